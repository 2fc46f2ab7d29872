"""
Utilities Package - Logging and Exception Handling
"""
from .logging import get_logger, get_case_logger, setup_logging
from .exceptions import (
    DermaAIError,
    CaseValidationError,
    CaseStateError,
    CaseConflictError,
    ImageNotFoundError,
    ProviderResponseError,
    NoProvidersEnabledError,
    ConfigurationError,
)

__all__ = [
    "get_logger",
    "get_case_logger",
    "setup_logging",
    "DermaAIError",
    "CaseValidationError",
    "CaseStateError",
    "CaseConflictError",
    "ImageNotFoundError",
    "ProviderResponseError",
    "NoProvidersEnabledError",
    "ConfigurationError",
]
