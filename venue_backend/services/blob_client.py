"""
Read-only client for the blob store holding deposit evidence.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import settings
from ..utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class BlobContent:
    data: bytes
    content_type: str


class BlobClient:
    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout_seconds = settings.blob_fetch_timeout_seconds if timeout_seconds is None else timeout_seconds
        self.user_agent = user_agent or settings.blob_user_agent
        self._transport = transport
    
    async def fetch(self, url: str) -> BlobContent:
        """
        Fetch an object by URL.
        
        Raises:
            ExternalServiceError: non-2xx upstream status, timeout or network failure
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.get(url, headers={"User-Agent": self.user_agent})
        except httpx.TimeoutException as e:
            logger.error("Blob fetch timed out")
            raise ExternalServiceError("Failed to fetch deposit image", upstream_status=504) from e
        except httpx.HTTPError as e:
            logger.error(f"Blob fetch failed: {type(e).__name__}")
            raise ExternalServiceError("Failed to fetch deposit image") from e
        
        if not response.is_success:
            logger.error(f"Blob storage returned HTTP {response.status_code}")
            raise ExternalServiceError(
                "Failed to fetch deposit image",
                upstream_status=response.status_code,
            )
        
        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        return BlobContent(data=response.content, content_type=content_type)
