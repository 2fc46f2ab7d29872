"""
Custom Exception Hierarchy

Provides specific exception types for the diagnostic analysis engine
with structured error information.
"""
from typing import Optional, Dict, Any


class DermaAIError(Exception):
    """Base exception for all diagnostic analysis errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class CaseValidationError(DermaAIError):
    """Case input violates a structural invariant (e.g. image count)."""

    def __init__(
        self,
        message: str,
        field_name: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="CASE_VALIDATION_ERROR",
            details={"field": field_name, **(details or {})}
        )
        self.field_name = field_name


class CaseStateError(DermaAIError):
    """Illegal case lifecycle transition."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            message=f"Cannot transition case from '{current}' to '{requested}'",
            code="CASE_STATE_ERROR",
            details={"current": current, "requested": requested}
        )
        self.current = current
        self.requested = requested


class CaseConflictError(DermaAIError):
    """A case with this id already exists; finished cases are never overwritten."""

    def __init__(self, case_id: str):
        super().__init__(
            message=f"Case '{case_id}' already exists",
            code="CASE_EXISTS",
            details={"caseId": case_id}
        )
        self.case_id = case_id


class ImageNotFoundError(DermaAIError):
    """An image reference could not be resolved to bytes."""

    def __init__(
        self,
        reference: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"Image not found: {reference}",
            code="IMAGE_NOT_FOUND",
            details={"reference": reference, **(details or {})}
        )
        self.reference = reference


class ProviderResponseError(DermaAIError):
    """A provider answered, but the answer is unusable."""

    def __init__(
        self,
        message: str,
        code: str = "INVALID_RESPONSE",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, code=code, details=details)


class NoProvidersEnabledError(DermaAIError):
    """No diagnostic provider is enabled; the case cannot be analyzed."""

    def __init__(self, message: str = "No providers available"):
        super().__init__(message=message, code="NO_PROVIDERS")


class ConfigurationError(DermaAIError):
    """Invalid provider or engine configuration."""

    def __init__(
        self,
        message: str,
        setting: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            details={"setting": setting, **(details or {})}
        )
        self.setting = setting
