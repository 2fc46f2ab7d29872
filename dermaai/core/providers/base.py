"""
Provider Client Base

A provider client performs ONE attempt against one diagnostic backend:
resolve images, send the shared prompt, parse the answer, and classify
anything that went wrong into a ProviderFailure. Retrying is the caller's
job (see dermaai.core.analysis.retry).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import asyncio
import re
import time

from dermaai.core.case import (
    AnalysisContext,
    FailureCode,
    ProviderFailure,
    ProviderOutcome,
    ProviderSuccess,
)
from dermaai.core.providers.images import DefaultImageResolver, ImageResolver, ResolvedImage
from dermaai.core.providers.prompts import build_prompt, parse_diagnoses
from dermaai.utils import get_logger, ImageNotFoundError, ProviderResponseError

logger = get_logger(__name__)


@dataclass
class ProviderConfig:
    """Per-provider tunables, read once per case at dispatch time."""
    provider_id: str
    enabled: bool = True
    api_key: Optional[str] = None
    model: str = ""
    max_retries: int = 2
    retry_base_delay: float = 1.0
    request_timeout_seconds: float = 90.0
    allow_fallback: bool = False
    fallback_model: Optional[str] = None
    temperature: float = 0.2
    max_output_tokens: int = 2048


# HTTP status -> failure kind. Anything unlisted is UNKNOWN (not retryable).
STATUS_CODES: Dict[int, FailureCode] = {
    400: FailureCode.BAD_REQUEST,
    401: FailureCode.AUTHENTICATION,
    403: FailureCode.AUTHENTICATION,
    404: FailureCode.MODEL_UNAVAILABLE,
    408: FailureCode.TIMEOUT,
    413: FailureCode.BAD_REQUEST,
    422: FailureCode.BAD_REQUEST,
    429: FailureCode.RATE_LIMITED,
    500: FailureCode.OVERLOADED,
    502: FailureCode.OVERLOADED,
    503: FailureCode.OVERLOADED,
    504: FailureCode.TIMEOUT,
}

_STATUS_IN_MESSAGE = re.compile(r"\b(400|401|403|404|408|413|422|429|500|502|503|504)\b")


def classify_status(status: Optional[int]) -> FailureCode:
    """Map an HTTP(-equivalent) status to a failure code."""
    if status is None:
        return FailureCode.UNKNOWN
    return STATUS_CODES.get(status, FailureCode.UNKNOWN)


def status_from_exception(exc: BaseException) -> Optional[int]:
    """Best-effort extraction of an HTTP status from an SDK exception."""
    for attr in ("status_code", "code", "http_status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool) and 100 <= value < 600:
            return value

    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value

    match = _STATUS_IN_MESSAGE.search(str(exc))
    if match:
        return int(match.group(1))
    return None


class ProviderClient(ABC):
    """
    Base class for diagnostic provider clients.

    Subclasses implement _generate() (one network round trip returning the
    raw text and the model that produced it) and may refine
    classify_exception() with SDK-specific exception types.
    """

    provider_id: str = "provider"

    def __init__(
        self,
        config: ProviderConfig,
        image_resolver: Optional[ImageResolver] = None
    ):
        self.config = config
        self.provider_id = config.provider_id or self.provider_id
        self.image_resolver = image_resolver or DefaultImageResolver()
        self._request_count = 0

    @abstractmethod
    async def _generate(self, images: List[ResolvedImage], prompt: str) -> Tuple[str, str]:
        """Send one request. Returns (response_text, model_name)."""

    async def invoke(
        self,
        images: Sequence[str],
        symptoms: str,
        context: AnalysisContext
    ) -> ProviderOutcome:
        """
        Run a single attempt against the provider.

        Args:
            images: Opaque image references (1-3)
            symptoms: Symptom text
            context: Structured analysis hints

        Returns:
            ProviderSuccess with at most five diagnoses, or ProviderFailure.
            This method does not raise for provider-level problems.
        """
        start_time = time.monotonic()
        self._request_count += 1

        if not self.config.api_key:
            return self._failure(FailureCode.AUTHENTICATION, f"{self.provider_id} API key is not configured")

        try:
            resolved = [await self.image_resolver.resolve(ref) for ref in images]
        except ImageNotFoundError as e:
            return self._failure(FailureCode.IMAGE_NOT_FOUND, e.message)
        except Exception as e:
            return self._failure(FailureCode.IMAGE_NOT_FOUND, f"Image could not be loaded: {e}")

        prompt = build_prompt(symptoms, context, image_count=len(resolved))

        try:
            text, model = await asyncio.wait_for(
                self._generate(resolved, prompt),
                timeout=self.config.request_timeout_seconds
            )
            diagnoses = parse_diagnoses(text)
        except asyncio.TimeoutError:
            return self._failure(
                FailureCode.TIMEOUT,
                f"{self.provider_id} did not respond within {self.config.request_timeout_seconds}s"
            )
        except ProviderResponseError as e:
            return self._failure(FailureCode(e.code), e.message)
        except Exception as e:
            code, status = self.classify_exception(e)
            return self._failure(code, f"{self.provider_id} analysis failed: {e}", http_status=status)

        elapsed = time.monotonic() - start_time
        logger.info(
            f"{self.provider_id} returned {len(diagnoses)} diagnoses "
            f"in {elapsed:.2f}s (model={model})"
        )
        return ProviderSuccess(diagnoses=diagnoses, analysis_time_seconds=elapsed, model=model)

    def classify_exception(self, exc: Exception) -> Tuple[FailureCode, Optional[int]]:
        """Classify a transport/SDK exception. Returns (code, http_status)."""
        if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
            return FailureCode.TIMEOUT, None
        status = status_from_exception(exc)
        return classify_status(status), status

    def _failure(
        self,
        code: FailureCode,
        message: str,
        http_status: Optional[int] = None
    ) -> ProviderFailure:
        logger.error(f"{self.provider_id} failure [{code.value}]: {message}")
        return ProviderFailure.from_code(self.provider_id, code, message, http_status=http_status)

    def get_stats(self) -> Dict[str, object]:
        """Get client statistics."""
        return {
            "provider": self.provider_id,
            "model": self.config.model,
            "request_count": self._request_count,
        }
