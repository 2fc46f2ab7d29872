"""
API models.
"""
from .api import AnalyzeCaseRequest, HealthResponse, ErrorResponse

__all__ = ["AnalyzeCaseRequest", "HealthResponse", "ErrorResponse"]
