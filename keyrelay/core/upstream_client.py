"""
Upstream client for posting chat-completion payloads
"""

import asyncio
import aiohttp
from typing import Any, Dict, Optional

from .errors import TransportFailure
from ..models.data_classes import UpstreamResponse
from ..utils.logging import setup_logging

logger = setup_logging()

DEFAULT_CONTENT_TYPE = "application/json"


class UpstreamClient:
    """Posts opaque JSON payloads to the upstream chat-completions endpoint"""

    def __init__(self, endpoint: str, http_referer: str, x_title: str,
                 timeout_seconds: float = 30):
        self.endpoint = endpoint
        self.http_referer = http_referer
        self.x_title = x_title
        self.timeout_seconds = timeout_seconds
        self.session: Optional[aiohttp.ClientSession] = None

    async def start(self):
        """Start the HTTP session"""
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)  # Bounds every attempt
        )

    async def stop(self):
        """Stop the HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.http_referer,
            "X-Title": self.x_title
        }

    async def post_chat_completion(self, api_key: str, payload: Dict[str, Any]) -> UpstreamResponse:
        """Send one attempt; raises TransportFailure when no HTTP response arrives"""
        if self.session is None:
            await self.start()

        try:
            async with self.session.post(self.endpoint, json=payload,
                                         headers=self._headers(api_key)) as response:
                body = await response.read()
                return UpstreamResponse(
                    status=response.status,
                    content_type=response.headers.get("Content-Type", DEFAULT_CONTENT_TYPE),
                    body=body,
                    retry_after=response.headers.get("Retry-After")
                )
        except asyncio.TimeoutError as e:
            logger.warning("Upstream call timed out", endpoint=self.endpoint,
                           timeout_seconds=self.timeout_seconds)
            raise TransportFailure(f"Upstream timed out after {self.timeout_seconds}s", e) from e
        except aiohttp.ClientError as e:
            logger.warning("Upstream call failed", endpoint=self.endpoint, error=str(e))
            raise TransportFailure(f"Upstream request failed: {e}", e) from e
