"""
JSON fallback feed client.

The feed is a single unfiltered array covering every region, keyed by short
field codes. It is only read when the rendered pages could not be scraped.
"""

import httpx
from typing import Any, List, Optional

from core.exceptions import FallbackSourceError
import logging

logger = logging.getLogger(__name__)


class FallbackFeedClient:
    """
    Fetch the fallback feed.

    A non-2xx response, transport error, timeout or a payload that is not a
    JSON array is a hard failure for the call; there is no retry here, the
    task layer owns retries.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def fetch(self) -> List[Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.url, headers={"Accept": "application/json"})

        except httpx.TimeoutException as e:
            raise FallbackSourceError(
                "Fallback feed request timed out",
                context={"url": self.url, "timeout": self.timeout},
                original_exception=e
            )

        except httpx.HTTPError as e:
            raise FallbackSourceError(
                "Fallback feed request failed",
                context={"url": self.url},
                original_exception=e
            )

        if not response.is_success:
            raise FallbackSourceError(
                f"Fallback feed returned HTTP {response.status_code}",
                context={
                    "url": self.url,
                    "status_code": response.status_code,
                    "response_body": response.text[:500]
                }
            )

        try:
            data = response.json()
        except ValueError as e:
            raise FallbackSourceError(
                "Failed to parse fallback feed JSON",
                context={"url": self.url, "response_body": response.text[:500]},
                original_exception=e
            )

        if not isinstance(data, list):
            raise FallbackSourceError(
                "Fallback feed payload is not an array",
                context={"url": self.url, "payload_type": type(data).__name__}
            )

        logger.info(f"Fetched {len(data)} fallback feed rows")
        return data
