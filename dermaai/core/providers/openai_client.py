"""
OpenAI Provider Client

Chat-completions call with image_url content parts and JSON output mode.
Supports a one-shot model fallback when the configured model is unavailable.
"""
from typing import List, Optional, Tuple

import openai
from openai import AsyncOpenAI

from dermaai.core.case import FailureCode
from dermaai.core.providers.base import ProviderClient, ProviderConfig
from dermaai.core.providers.images import ImageResolver, ResolvedImage
from dermaai.core.providers.prompts import SYSTEM_PROMPT
from dermaai.utils import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "gpt-5"
DEFAULT_FALLBACK_MODEL = "gpt-4o"

USER_INSTRUCTION = (
    "Please analyze this dermatological image and provide differential "
    "diagnoses based on the clinical information provided."
)


class OpenAIProviderClient(ProviderClient):
    """Client for the OpenAI chat completions API."""

    provider_id = "openai"

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        image_resolver: Optional[ImageResolver] = None,
        client: Optional[AsyncOpenAI] = None
    ):
        config = config or ProviderConfig(
            provider_id="openai",
            model=DEFAULT_MODEL,
            allow_fallback=True,
            fallback_model=DEFAULT_FALLBACK_MODEL,
        )
        super().__init__(config, image_resolver)
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                timeout=self.config.request_timeout_seconds,
                # Retries are owned by RetryPolicy
                max_retries=0,
            )
        return self._client

    def _build_messages(self, images: List[ResolvedImage], prompt: str) -> list:
        content = [{"type": "text", "text": f"{USER_INSTRUCTION}\n\n{prompt}"}]
        content.extend(
            {"type": "image_url", "image_url": {"url": image.to_data_uri()}}
            for image in images
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ]

    async def _complete(self, model: str, messages: list) -> str:
        response = await self._get_client().chat.completions.create(
            model=model,
            messages=messages,
            response_format={"type": "json_object"},
            max_completion_tokens=self.config.max_output_tokens,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def _generate(self, images: List[ResolvedImage], prompt: str) -> Tuple[str, str]:
        model = self.config.model or DEFAULT_MODEL
        messages = self._build_messages(images, prompt)

        try:
            return await self._complete(model, messages), model
        except openai.NotFoundError as e:
            fallback = self.config.fallback_model
            if not (self.config.allow_fallback and fallback and fallback != model):
                raise
            logger.warning(f"OpenAI model {model} unavailable ({e}); falling back to {fallback}")
            return await self._complete(fallback, messages), fallback

    def classify_exception(self, exc: Exception) -> Tuple[FailureCode, Optional[int]]:
        # APITimeoutError subclasses APIConnectionError, so test it first
        if isinstance(exc, openai.APITimeoutError):
            return FailureCode.TIMEOUT, None
        if isinstance(exc, openai.APIConnectionError):
            return FailureCode.OVERLOADED, None
        if isinstance(exc, openai.RateLimitError):
            return FailureCode.RATE_LIMITED, 429
        if isinstance(exc, openai.AuthenticationError):
            return FailureCode.AUTHENTICATION, exc.status_code
        if isinstance(exc, openai.APIStatusError):
            code, _ = super().classify_exception(exc)
            return code, exc.status_code
        return super().classify_exception(exc)
