"""
Consensus Merger

Merges per-provider diagnosis lists into one ranked list:

1. Group diagnoses by lower-cased name, walking providers in dispatch order
   and each provider's diagnoses in their given order. The first report of
   a name supplies the description, key features and recommendations.
2. Score each bucket as the mean of its source confidences, times 1.1 when
   more than one provider reported it, rounded half-up and capped at 100.
3. Stable-sort by score descending (first-grouped bucket wins ties).
4. Keep the top five and number them 1..k.

Failed providers contribute nothing. All-failed input yields [].
"""
from dataclasses import dataclass, field
from typing import Dict, List, Mapping

from dermaai.core.case import (
    DiagnosisSource,
    MergedDiagnosis,
    ProviderOutcome,
    ProviderSuccess,
    RawDiagnosis,
    round_half_up,
)
from dermaai.utils import get_logger

logger = get_logger(__name__)

CONSENSUS_BOOST = 1.1
MAX_FINAL_DIAGNOSES = 5


@dataclass
class MergeBucket:
    """Accumulator for one unique diagnosis name."""
    seed: RawDiagnosis
    sources: List[DiagnosisSource] = field(default_factory=list)

    @property
    def provider_count(self) -> int:
        return len({source.provider_id for source in self.sources})

    def average_confidence(self) -> float:
        return sum(s.original_confidence for s in self.sources) / len(self.sources)

    def final_confidence(self, boost: float) -> int:
        multiplier = boost if self.provider_count > 1 else 1.0
        return min(100, round_half_up(self.average_confidence() * multiplier))


class ConsensusMerger:
    """Deterministic merge of provider outcomes into final diagnoses."""

    def __init__(self, boost: float = CONSENSUS_BOOST, limit: int = MAX_FINAL_DIAGNOSES):
        self.boost = boost
        self.limit = limit

    def group(self, outcomes: Mapping[str, ProviderOutcome]) -> List[MergeBucket]:
        """Step 1: insertion-ordered buckets keyed by lower-cased name."""
        buckets: Dict[str, MergeBucket] = {}
        for provider_id, outcome in outcomes.items():
            if not isinstance(outcome, ProviderSuccess):
                continue
            for diagnosis in outcome.diagnoses:
                key = diagnosis.name.strip().lower()
                bucket = buckets.get(key)
                if bucket is None:
                    bucket = buckets[key] = MergeBucket(seed=diagnosis)
                bucket.sources.append(DiagnosisSource(
                    provider_id=provider_id,
                    original_confidence=diagnosis.confidence,
                ))
        return list(buckets.values())

    def merge(self, outcomes: Mapping[str, ProviderOutcome]) -> List[MergedDiagnosis]:
        """
        Merge provider outcomes.

        Args:
            outcomes: provider id -> outcome, iterated in its own order

        Returns:
            At most `limit` merged diagnoses, rank 1 first
        """
        buckets = self.group(outcomes)
        scored = [(bucket, bucket.final_confidence(self.boost)) for bucket in buckets]

        # sorted() is stable: equal scores keep grouping order
        ranked = sorted(scored, key=lambda item: item[1], reverse=True)[:self.limit]

        merged = [
            MergedDiagnosis(
                rank=rank,
                name=bucket.seed.name,
                confidence=confidence,
                description=bucket.seed.description,
                key_features=list(bucket.seed.key_features or []),
                recommendations=list(bucket.seed.recommendations or []),
                sources=list(bucket.sources),
            )
            for rank, (bucket, confidence) in enumerate(ranked, start=1)
        ]

        if len(buckets) > self.limit:
            logger.debug(f"Dropped {len(buckets) - self.limit} lower-ranked diagnoses")
        return merged


def merge_outcomes(outcomes: Mapping[str, ProviderOutcome]) -> List[MergedDiagnosis]:
    """Merge with the default boost and cap."""
    return ConsensusMerger().merge(outcomes)
