"""
Gemini Provider Client

Sends the case to Google Gemini through LangChain's ChatGoogleGenerativeAI
with the images inlined as base64 data URIs and JSON output requested.
"""
from enum import Enum
from typing import Dict, List, Optional, Tuple

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from dermaai.core.case import FailureCode
from dermaai.core.providers.base import ProviderClient, ProviderConfig, classify_status
from dermaai.core.providers.images import ImageResolver, ResolvedImage
from dermaai.core.providers.prompts import SYSTEM_PROMPT
from dermaai.utils import get_logger

logger = get_logger(__name__)


class GeminiModel(str, Enum):
    """Gemini models known to handle multimodal JSON output."""
    FLASH_2_5 = "gemini-2.5-flash"  # Stable standard
    FLASH_2_5_LITE = "gemini-2.5-flash-lite"
    PRO_2_5 = "gemini-2.5-pro"


# google.rpc status names that show up in error messages
_GOOGLE_STATUS_TOKENS: Dict[str, FailureCode] = {
    "RESOURCE_EXHAUSTED": FailureCode.RATE_LIMITED,
    "UNAVAILABLE": FailureCode.OVERLOADED,
    "INTERNAL": FailureCode.OVERLOADED,
    "DEADLINE_EXCEEDED": FailureCode.TIMEOUT,
    "UNAUTHENTICATED": FailureCode.AUTHENTICATION,
    "PERMISSION_DENIED": FailureCode.AUTHENTICATION,
    "API_KEY_INVALID": FailureCode.AUTHENTICATION,
    "INVALID_ARGUMENT": FailureCode.BAD_REQUEST,
    "NOT_FOUND": FailureCode.MODEL_UNAVAILABLE,
}


class GeminiProviderClient(ProviderClient):
    """Client for Google Gemini."""

    provider_id = "gemini"

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        image_resolver: Optional[ImageResolver] = None
    ):
        config = config or ProviderConfig(provider_id="gemini", model=GeminiModel.FLASH_2_5.value)
        super().__init__(config, image_resolver)
        self._llm: Optional[ChatGoogleGenerativeAI] = None

    @property
    def _model_name(self) -> str:
        """Safely resolve model name whether config.model is an enum or a plain string."""
        m = self.config.model or GeminiModel.FLASH_2_5
        return m.value if hasattr(m, "value") else str(m)

    def _get_llm(self) -> ChatGoogleGenerativeAI:
        if self._llm is None:
            self._llm = ChatGoogleGenerativeAI(
                model=self._model_name,
                google_api_key=self.config.api_key,
                temperature=self.config.temperature,
                max_output_tokens=self.config.max_output_tokens,
                timeout=self.config.request_timeout_seconds,
                # Retries are owned by RetryPolicy
                max_retries=0,
                response_mime_type="application/json",
            )
            logger.info(f"LangChain Gemini client initialized with model: {self._model_name}")
        return self._llm

    async def _generate(self, images: List[ResolvedImage], prompt: str) -> Tuple[str, str]:
        content = [{"type": "text", "text": prompt}]
        content.extend(
            {"type": "image_url", "image_url": image.to_data_uri()}
            for image in images
        )

        response = await self._get_llm().ainvoke([
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=content),
        ])
        text = response.content if hasattr(response, "content") else str(response)
        if isinstance(text, list):
            # Multipart responses come back as content blocks
            text = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in text
            )
        return text, self._model_name

    def classify_exception(self, exc: Exception) -> Tuple[FailureCode, Optional[int]]:
        code, status = super().classify_exception(exc)
        if code is not FailureCode.UNKNOWN:
            return code, status

        message = str(exc).upper()
        for token, token_code in _GOOGLE_STATUS_TOKENS.items():
            if token in message:
                return token_code, status
        return classify_status(status), status
