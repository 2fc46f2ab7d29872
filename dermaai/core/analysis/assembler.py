"""
Case Outcome Assembler

Combines merged diagnoses, provider outcomes and failures into the final
CaseResult and settles the case status.
"""
from typing import List, Mapping

from dermaai.core.case import (
    AnalysisError,
    Case,
    CaseResult,
    CaseStatus,
    MergedDiagnosis,
    ProviderFailure,
    ProviderOutcome,
)
from dermaai.utils import get_case_logger


class CaseOutcomeAssembler:
    """Builds CaseResult objects from orchestration output."""

    def collect_errors(self, outcomes: Mapping[str, ProviderOutcome]) -> List[AnalysisError]:
        """Every failure, in provider dispatch order."""
        return [
            AnalysisError.from_failure(outcome)
            for outcome in outcomes.values()
            if isinstance(outcome, ProviderFailure)
        ]

    def assemble(
        self,
        case: Case,
        outcomes: Mapping[str, ProviderOutcome],
        merged_diagnoses: List[MergedDiagnosis]
    ) -> CaseResult:
        """
        Complete the case. At least one provider was dispatched, so the case
        is `completed` however many of them failed.
        """
        case.provider_results = dict(outcomes)
        case.final_diagnoses = list(merged_diagnoses)
        if case.status is CaseStatus.PENDING:
            case.transition_to(CaseStatus.ANALYZING)
        case.transition_to(CaseStatus.COMPLETED)

        log = get_case_logger(__name__, case.id)
        errors = self.collect_errors(outcomes)
        if errors:
            log.warning(
                f"Completed with {len(errors)} provider error(s): "
                + ", ".join(f"{e.provider}={e.code}" for e in errors)
            )
        else:
            log.info(f"Completed with {len(case.final_diagnoses)} diagnoses")
        return CaseResult(case=case, analysis_errors=errors)

    def assemble_failed(self, case: Case, reason: str = "No providers available") -> CaseResult:
        """Fail the case because no provider could be dispatched."""
        case.provider_results = {}
        case.transition_to(CaseStatus.FAILED)
        get_case_logger(__name__, case.id).error(f"Failed: {reason}")
        return CaseResult(
            case=case,
            analysis_errors=[AnalysisError(
                provider="system",
                code="NO_PROVIDERS",
                message=reason,
                hint="Analysis is disabled. Enable at least one AI provider.",
            )],
        )
