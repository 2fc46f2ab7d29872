"""
Case Data Model

Domain types for a single diagnostic request/response unit: the case itself,
per-provider outcomes, raw and merged diagnoses, and the caller-facing result.

Serialisation (to_dict) uses the camelCase field names the web and mobile
clients already consume (keyFeatures, finalDiagnoses, analysisErrors, ...).
"""
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Union, Sequence
from enum import Enum
from datetime import datetime, timezone
import math
import uuid

from dermaai.utils import CaseValidationError, CaseStateError

MIN_IMAGES = 1
MAX_IMAGES = 3


class CaseStatus(str, Enum):
    """Case lifecycle states."""
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


# pending -> analyzing -> {completed, failed}; terminal states have no exits
_ALLOWED_TRANSITIONS = {
    CaseStatus.PENDING: {CaseStatus.ANALYZING, CaseStatus.FAILED},
    CaseStatus.ANALYZING: {CaseStatus.COMPLETED, CaseStatus.FAILED},
    CaseStatus.COMPLETED: set(),
    CaseStatus.FAILED: set(),
}


class Language(str, Enum):
    """Output languages supported by the provider prompts."""
    ENGLISH = "en"
    TURKISH = "tr"


class FailureCode(str, Enum):
    """Closed vocabulary of provider failure kinds."""
    RATE_LIMITED = "RATE_LIMITED"
    OVERLOADED = "OVERLOADED"
    TIMEOUT = "TIMEOUT"
    AUTHENTICATION = "AUTHENTICATION"
    BAD_REQUEST = "BAD_REQUEST"
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    INVALID_IMAGE = "INVALID_IMAGE"
    IMAGE_NOT_FOUND = "IMAGE_NOT_FOUND"
    UNKNOWN = "UNKNOWN"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_CODES

    @property
    def hint(self) -> Optional[str]:
        return _FAILURE_HINTS.get(self)


_RETRYABLE_CODES = frozenset({
    FailureCode.RATE_LIMITED,
    FailureCode.OVERLOADED,
    FailureCode.TIMEOUT,
})

_FAILURE_HINTS = {
    FailureCode.RATE_LIMITED: "The AI service is receiving too many requests. Try again in a few minutes.",
    FailureCode.OVERLOADED: "The AI service is temporarily overloaded. Try again shortly.",
    FailureCode.TIMEOUT: "The AI service did not respond in time. Try again shortly.",
    FailureCode.AUTHENTICATION: "The AI service credentials are missing or invalid. Contact an administrator.",
    FailureCode.MODEL_UNAVAILABLE: "The configured AI model is not available.",
    FailureCode.INVALID_IMAGE: "Upload a clear, close-up photo of the skin lesion.",
    FailureCode.IMAGE_NOT_FOUND: "The uploaded image could not be read. Upload it again.",
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def clamp_confidence(value: Union[int, float]) -> int:
    """Coerce a provider confidence into an integer in [0, 100]."""
    return max(0, min(100, round_half_up(float(value))))


@dataclass
class AnalysisContext:
    """Structured hints that accompany the images."""
    lesion_location: Optional[str] = None
    medical_history: List[str] = field(default_factory=list)
    language: Language = Language.ENGLISH
    is_health_professional: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lesionLocation": self.lesion_location,
            "medicalHistory": list(self.medical_history),
            "language": self.language.value,
            "isHealthProfessional": self.is_health_professional,
        }


@dataclass
class RawDiagnosis:
    """One candidate diagnosis as returned by a single provider."""
    name: str
    confidence: int
    description: str = ""
    key_features: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "confidence": self.confidence,
            "description": self.description,
            "keyFeatures": list(self.key_features),
            "recommendations": list(self.recommendations),
        }


@dataclass
class ProviderSuccess:
    """Terminal success of one provider call."""
    diagnoses: List[RawDiagnosis]
    analysis_time_seconds: float
    model: Optional[str] = None

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "diagnoses": [d.to_dict() for d in self.diagnoses],
            "analysisTime": round(self.analysis_time_seconds, 3),
            "model": self.model,
        }


@dataclass
class ProviderFailure:
    """Terminal failure of one provider call, classified once by the client."""
    provider: str
    code: FailureCode
    message: str
    retryable: bool
    http_status: Optional[int] = None
    hint: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_code(
        cls,
        provider: str,
        code: FailureCode,
        message: str,
        http_status: Optional[int] = None
    ) -> "ProviderFailure":
        """Build a failure whose retryability and hint derive from its code."""
        return cls(
            provider=provider,
            code=code,
            message=message,
            retryable=code.retryable,
            http_status=http_status,
            hint=code.hint,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "httpStatus": self.http_status,
            "hint": self.hint,
        }


ProviderOutcome = Union[ProviderSuccess, ProviderFailure]


def is_success(outcome: ProviderOutcome) -> bool:
    return isinstance(outcome, ProviderSuccess)


@dataclass
class DiagnosisSource:
    """A provider's contribution to a merged diagnosis."""
    provider_id: str
    original_confidence: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "providerId": self.provider_id,
            "originalConfidence": self.original_confidence,
        }


@dataclass
class MergedDiagnosis:
    """Consensus output: a ranked, deduplicated diagnosis."""
    rank: int
    name: str
    confidence: int
    description: str = ""
    key_features: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    sources: List[DiagnosisSource] = field(default_factory=list)
    is_urgent: bool = False

    @property
    def has_consensus(self) -> bool:
        return len({s.provider_id for s in self.sources}) > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "name": self.name,
            "confidence": self.confidence,
            "description": self.description,
            "keyFeatures": list(self.key_features),
            "recommendations": list(self.recommendations),
            "sources": [s.to_dict() for s in self.sources],
            "isUrgent": self.is_urgent,
        }


@dataclass
class AnalysisError:
    """Caller-visible record of a provider failure. Never persisted."""
    provider: str
    code: str
    message: str
    hint: Optional[str] = None

    @classmethod
    def from_failure(cls, failure: ProviderFailure) -> "AnalysisError":
        return cls(
            provider=failure.provider,
            code=failure.code.value,
            message=failure.message,
            hint=failure.hint,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"provider": self.provider, "code": self.code, "message": self.message}
        if self.hint:
            data["hint"] = self.hint
        return data


def _normalize_symptoms(symptoms: Union[str, Sequence[str], None]) -> str:
    if symptoms is None:
        return ""
    if isinstance(symptoms, str):
        return symptoms.strip()
    return ", ".join(s.strip() for s in symptoms if s and s.strip())


@dataclass
class Case:
    """
    A single diagnostic request/response unit.

    The id is owned by the caller and treated as an opaque correlation key.
    Status transitions are guarded; once completed or failed the case is
    never mutated again by the engine.
    """
    images: List[str]
    symptoms: str = ""
    context: AnalysisContext = field(default_factory=AnalysisContext)
    id: str = field(default_factory=lambda: f"DR-{uuid.uuid4().hex[:8].upper()}")
    provider_results: Dict[str, ProviderOutcome] = field(default_factory=dict)
    final_diagnoses: Optional[List[MergedDiagnosis]] = None
    status: CaseStatus = CaseStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        self.images = list(self.images or [])
        if not MIN_IMAGES <= len(self.images) <= MAX_IMAGES:
            raise CaseValidationError(
                f"A case requires between {MIN_IMAGES} and {MAX_IMAGES} images, got {len(self.images)}",
                field_name="images",
                details={"count": len(self.images)}
            )
        self.symptoms = _normalize_symptoms(self.symptoms)

    @property
    def is_terminal(self) -> bool:
        return self.status in (CaseStatus.COMPLETED, CaseStatus.FAILED)

    def transition_to(self, status: CaseStatus) -> None:
        """Move the case to a new lifecycle state."""
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise CaseStateError(self.status.value, status.value)
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "caseId": self.id,
            "imageUrls": list(self.images),
            "symptoms": self.symptoms,
            **self.context.to_dict(),
            "providerResults": {
                provider: outcome.to_dict()
                for provider, outcome in self.provider_results.items()
            },
            "finalDiagnoses": (
                [d.to_dict() for d in self.final_diagnoses]
                if self.final_diagnoses is not None else None
            ),
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class CaseResult:
    """The finished case plus ephemeral, caller-visible analysis errors."""
    case: Case
    analysis_errors: List[AnalysisError] = field(default_factory=list)

    @property
    def status(self) -> CaseStatus:
        return self.case.status

    @property
    def final_diagnoses(self) -> List[MergedDiagnosis]:
        return list(self.case.final_diagnoses or [])

    @property
    def has_urgent_findings(self) -> bool:
        return any(d.is_urgent for d in self.final_diagnoses)

    def to_persistence_dict(self) -> Dict[str, Any]:
        """Durable state only, without analysis errors."""
        return self.case.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.case.to_dict(),
            "analysisErrors": [e.to_dict() for e in self.analysis_errors],
        }
