"""
Urgency Classifier

Flags merged diagnoses whose name contains a high-risk condition and whose
combined confidence is above a noise floor.
"""
from typing import Iterable, List, Sequence

from dermaai.core.case import MergedDiagnosis

URGENT_CONDITIONS = (
    "melanoma",
    "basal cell carcinoma",
    "squamous cell carcinoma",
)

# Strictly greater than: a 25% melanoma match is not flagged
URGENCY_CONFIDENCE_THRESHOLD = 25


def is_urgent_condition(
    name: str,
    confidence: int,
    conditions: Sequence[str] = URGENT_CONDITIONS,
    threshold: int = URGENCY_CONFIDENCE_THRESHOLD
) -> bool:
    """Case-insensitive substring match on `name`, gated on `confidence > threshold`."""
    lowered = name.lower()
    return confidence > threshold and any(condition.lower() in lowered for condition in conditions)


class UrgencyClassifier:
    """Sets is_urgent on merged diagnoses. Rank and confidence are untouched."""

    def __init__(
        self,
        conditions: Iterable[str] = URGENT_CONDITIONS,
        threshold: int = URGENCY_CONFIDENCE_THRESHOLD
    ):
        self.conditions = tuple(c.lower() for c in conditions)
        self.threshold = threshold

    def classify(self, diagnosis: MergedDiagnosis) -> bool:
        return is_urgent_condition(diagnosis.name, diagnosis.confidence, self.conditions, self.threshold)

    def apply(self, diagnoses: List[MergedDiagnosis]) -> List[MergedDiagnosis]:
        for diagnosis in diagnoses:
            diagnosis.is_urgent = self.classify(diagnosis)
        return diagnoses
