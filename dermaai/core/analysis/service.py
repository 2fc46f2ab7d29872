"""
Diagnostic Analysis Service

End-to-end pipeline for one case:

    configuration -> orchestrator (providers x retry, in parallel)
                  -> consensus merger -> urgency classifier
                  -> outcome assembler -> repository

Provider failures never escape as exceptions; the caller always gets a
CaseResult. The only case-level failure is "no providers enabled".
"""
from typing import Callable, Dict, List, Optional, Sequence

from dermaai.config import Settings, get_settings
from dermaai.core.case import Case, CaseResult, CaseStatus
from dermaai.core.analysis.assembler import CaseOutcomeAssembler
from dermaai.core.analysis.consensus import ConsensusMerger
from dermaai.core.analysis.orchestrator import AnalysisOrchestrator
from dermaai.core.analysis.retry import RetryPolicy, Sleeper
from dermaai.core.analysis.urgency import UrgencyClassifier
from dermaai.core.providers.base import ProviderClient, ProviderConfig
from dermaai.core.providers.gemini_client import GeminiProviderClient
from dermaai.core.providers.images import DefaultImageResolver
from dermaai.core.providers.openai_client import OpenAIProviderClient
from dermaai.core.repository import CaseRepository, InMemoryCaseRepository
from dermaai.utils import get_logger, get_case_logger, CaseConflictError, CaseStateError, NoProvidersEnabledError

logger = get_logger(__name__)

ConfigSource = Callable[[], Sequence[ProviderConfig]]


class DiagnosticAnalysisService:
    """
    Runs the full analysis for a case.

    Args:
        orchestrator: Parallel provider dispatcher
        config_source: Returns provider configuration; read once per case
        repository: Receives every finished CaseResult
        sleep: Optional sleep override applied to every retry policy
    """

    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        config_source: ConfigSource,
        repository: Optional[CaseRepository] = None,
        merger: Optional[ConsensusMerger] = None,
        classifier: Optional[UrgencyClassifier] = None,
        assembler: Optional[CaseOutcomeAssembler] = None,
        sleep: Optional[Sleeper] = None
    ):
        self.orchestrator = orchestrator
        self.config_source = config_source
        self.repository = repository or InMemoryCaseRepository()
        self.merger = merger or ConsensusMerger()
        self.classifier = classifier or UrgencyClassifier()
        self.assembler = assembler or CaseOutcomeAssembler()
        self.sleep = sleep

    def _policies(self, configs: Sequence[ProviderConfig]) -> Dict[str, RetryPolicy]:
        policies = {}
        for config in configs:
            policy = RetryPolicy(max_retries=config.max_retries, base_delay=config.retry_base_delay)
            if self.sleep is not None:
                policy.sleep = self.sleep
            policies[config.provider_id] = policy
        return policies

    async def analyze_case(self, case: Case) -> CaseResult:
        """
        Analyze a pending case and persist the result.

        Raises:
            CaseStateError: if the case is not pending. Re-analysis is
                modelled as a new case.
            CaseConflictError: if a case with the same id is already stored
        """
        if case.status is not CaseStatus.PENDING:
            raise CaseStateError(case.status.value, CaseStatus.ANALYZING.value)
        if await self.repository.exists(case.id):
            raise CaseConflictError(case.id)

        # Snapshot configuration; later changes do not affect this case
        configs: List[ProviderConfig] = [c for c in self.config_source() if c.enabled]
        enabled = [c.provider_id for c in configs]

        if not enabled:
            result = self.assembler.assemble_failed(case)
            await self.repository.save(result)
            return result

        case.transition_to(CaseStatus.ANALYZING)
        try:
            outcomes = await self.orchestrator.analyze(case, enabled, policies=self._policies(configs))
        except NoProvidersEnabledError as e:
            result = self.assembler.assemble_failed(case, e.message)
            await self.repository.save(result)
            return result

        merged = self.classifier.apply(self.merger.merge(outcomes))
        result = self.assembler.assemble(case, outcomes, merged)

        if result.has_urgent_findings:
            urgent = [d.name for d in result.final_diagnoses if d.is_urgent]
            get_case_logger(__name__, case.id).warning(f"Flagged urgent: {', '.join(urgent)}")

        await self.repository.save(result)
        return result


def build_provider_clients(
    configs: Sequence[ProviderConfig],
    image_base_dir: Optional[str] = None
) -> Dict[str, ProviderClient]:
    """Instantiate the real provider clients for the given configuration."""
    resolver = DefaultImageResolver(base_dir=image_base_dir)
    factories = {
        "gemini": GeminiProviderClient,
        "openai": OpenAIProviderClient,
    }
    clients: Dict[str, ProviderClient] = {}
    for config in configs:
        factory = factories.get(config.provider_id)
        if factory is None:
            logger.warning(f"No client implementation for provider '{config.provider_id}'")
            continue
        clients[config.provider_id] = factory(config, image_resolver=resolver)
    return clients


def build_default_service(
    settings: Optional[Settings] = None,
    repository: Optional[CaseRepository] = None
) -> DiagnosticAnalysisService:
    """Wire the service from application settings."""
    settings = settings or get_settings()

    clients = build_provider_clients(settings.provider_configs(), settings.image_base_dir)
    return DiagnosticAnalysisService(
        orchestrator=AnalysisOrchestrator(clients),
        config_source=settings.provider_configs,
        repository=repository,
    )
