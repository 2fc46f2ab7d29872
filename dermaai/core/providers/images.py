"""
Image Resolution

Turns opaque image references (data URIs, http(s) URLs, local upload paths)
into raw bytes plus a MIME type, ready to be inlined as base64 in provider
requests.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol
import base64
import binascii
import mimetypes

import httpx

from dermaai.utils import get_logger, ImageNotFoundError

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class ResolvedImage:
    """Image bytes with their MIME type."""
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


class ImageResolver(Protocol):
    """Resolves an image reference or raises ImageNotFoundError."""

    async def resolve(self, reference: str) -> ResolvedImage:
        ...


class DefaultImageResolver:
    """
    Resolver for the reference forms the upload layer produces.

    Supported references:
        data:<mime>;base64,<payload>
        http:// and https:// URLs (object storage / CDN)
        paths inside the base upload directory (refused when none is set)
    """

    def __init__(
        self,
        base_dir: Optional[str] = None,
        timeout_seconds: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.base_dir = Path(base_dir) if base_dir else None
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

    async def resolve(self, reference: str) -> ResolvedImage:
        if not reference:
            raise ImageNotFoundError(reference or "<empty>")

        if reference.startswith("data:"):
            return self._decode_data_uri(reference)
        if reference.startswith(("http://", "https://")):
            return await self._fetch(reference)
        return self._read_local(reference)

    def _decode_data_uri(self, reference: str) -> ResolvedImage:
        header, _, payload = reference.partition(",")
        if not payload or ";base64" not in header:
            raise ImageNotFoundError(reference[:64], details={"reason": "malformed data URI"})
        mime_type = header[len("data:"):].split(";")[0] or DEFAULT_MIME_TYPE
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            raise ImageNotFoundError(reference[:64], details={"reason": "invalid base64 payload"})
        return ResolvedImage(data=data, mime_type=mime_type)

    async def _fetch(self, url: str) -> ResolvedImage:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, timeout=self.timeout_seconds)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(url, timeout=self.timeout_seconds)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Image fetch failed for {url}: {e}")
            raise ImageNotFoundError(url, details={"reason": str(e)})

        if response.status_code != 200:
            raise ImageNotFoundError(url, details={"status": response.status_code})

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        return ResolvedImage(data=response.content, mime_type=content_type or DEFAULT_MIME_TYPE)

    def _read_local(self, reference: str) -> ResolvedImage:
        # Local reads are confined to the upload directory
        if self.base_dir is None:
            raise ImageNotFoundError(reference, details={"reason": "local image paths are disabled"})

        root = self.base_dir.resolve()
        path = (root / reference.lstrip("/")).resolve()
        if not path.is_relative_to(root) or not path.is_file():
            raise ImageNotFoundError(reference)

        try:
            data = path.read_bytes()
        except OSError as e:
            raise ImageNotFoundError(reference, details={"reason": str(e)})

        mime_type, _ = mimetypes.guess_type(path.name)
        return ResolvedImage(data=data, mime_type=mime_type or DEFAULT_MIME_TYPE)
