"""
Analysis Orchestrator

Fans a case out to every enabled provider concurrently and waits for all of
them to settle. A slow or failing provider never cancels or blocks the
others; each provider's task returns its own outcome and the results are
joined in dispatch order.
"""
from typing import Dict, List, Mapping, Optional, Sequence
import asyncio
import time

from dermaai.core.case import (
    Case,
    FailureCode,
    ProviderFailure,
    ProviderOutcome,
    is_success,
)
from dermaai.core.analysis.retry import RetryPolicy
from dermaai.core.providers.base import ProviderClient
from dermaai.utils import get_case_logger, NoProvidersEnabledError


class AnalysisOrchestrator:
    """
    Parallel dispatcher over provider clients.

    Args:
        clients: provider id -> client
        policies: provider id -> retry policy (default policy when absent)
    """

    def __init__(
        self,
        clients: Mapping[str, ProviderClient],
        policies: Optional[Mapping[str, RetryPolicy]] = None
    ):
        self.clients = dict(clients)
        self.policies = dict(policies or {})
        self._analysis_count = 0

    def policy_for(self, provider_id: str) -> RetryPolicy:
        return self.policies.get(provider_id) or RetryPolicy()

    async def _run_provider(self, provider_id: str, case: Case, policy: RetryPolicy) -> ProviderOutcome:
        client = self.clients.get(provider_id)
        if client is None:
            return ProviderFailure.from_code(
                provider_id, FailureCode.UNKNOWN, f"Provider '{provider_id}' is not configured"
            )

        async def attempt() -> ProviderOutcome:
            return await client.invoke(case.images, case.symptoms, case.context)

        return await policy.run(attempt, label=provider_id)

    async def analyze(
        self,
        case: Case,
        enabled_providers: Sequence[str],
        policies: Optional[Mapping[str, RetryPolicy]] = None
    ) -> Dict[str, ProviderOutcome]:
        """
        Dispatch the case to all enabled providers and collect every outcome.

        Args:
            case: The case to analyze
            enabled_providers: Provider ids, in merge order
            policies: Per-case retry policy overrides (provider id -> policy)

        Returns:
            provider id -> outcome, ordered like `enabled_providers`

        Raises:
            NoProvidersEnabledError: if `enabled_providers` is empty; no
                network call is attempted in that case
        """
        providers: List[str] = list(dict.fromkeys(enabled_providers))
        if not providers:
            raise NoProvidersEnabledError()

        log = get_case_logger(__name__, case.id)
        log.info(f"Dispatching to {len(providers)} providers: {', '.join(providers)}")
        start_time = time.monotonic()

        overrides = dict(policies or {})

        # return_exceptions keeps one task's crash from cancelling the rest
        settled = await asyncio.gather(
            *(
                self._run_provider(provider_id, case, overrides.get(provider_id) or self.policy_for(provider_id))
                for provider_id in providers
            ),
            return_exceptions=True
        )

        outcomes: Dict[str, ProviderOutcome] = {}
        for provider_id, result in zip(providers, settled):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                log.error(f"{provider_id} task crashed: {result!r}")
                result = ProviderFailure.from_code(
                    provider_id, FailureCode.UNKNOWN, f"{provider_id} analysis failed: {result}"
                )
            outcomes[provider_id] = result

        self._analysis_count += 1
        succeeded = sum(1 for outcome in outcomes.values() if is_success(outcome))
        log.info(
            f"{succeeded}/{len(outcomes)} providers succeeded "
            f"in {time.monotonic() - start_time:.2f}s"
        )
        return outcomes

    def get_stats(self) -> Dict[str, object]:
        """Get orchestrator statistics."""
        return {
            "analysis_count": self._analysis_count,
            "providers": list(self.clients),
            "clients": [client.get_stats() for client in self.clients.values()],
        }
