"""
DermaAI - Diagnostic Analysis Orchestration & Consensus Engine

Dispatches a skin lesion case to several diagnostic AI providers in
parallel and merges their answers into one ranked, urgency-flagged list.
"""
__version__ = "1.0.0"
