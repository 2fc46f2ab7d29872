"""
Analysis Orchestration & Consensus

Fan-out to providers with retry, consensus merging, urgency flagging and
case outcome assembly.
"""
from .retry import RetryPolicy, with_retry
from .orchestrator import AnalysisOrchestrator
from .consensus import ConsensusMerger, merge_outcomes, CONSENSUS_BOOST, MAX_FINAL_DIAGNOSES
from .urgency import UrgencyClassifier, is_urgent_condition, URGENT_CONDITIONS
from .assembler import CaseOutcomeAssembler
from .service import DiagnosticAnalysisService, build_default_service, build_provider_clients

__all__ = [
    "RetryPolicy",
    "with_retry",
    "AnalysisOrchestrator",
    "ConsensusMerger",
    "merge_outcomes",
    "CONSENSUS_BOOST",
    "MAX_FINAL_DIAGNOSES",
    "UrgencyClassifier",
    "is_urgent_condition",
    "URGENT_CONDITIONS",
    "CaseOutcomeAssembler",
    "DiagnosticAnalysisService",
    "build_default_service",
    "build_provider_clients",
]
