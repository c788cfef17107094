"""
HTTP client for submitting record match request messages.

Request messages are PUT to the FHIR server named by a record match system
interface, from where the record matching system picks them up.
"""

from typing import Any

import httpx

from ptmatch.settings import settings


class RecordMatcherService:
    """HTTP client for record matching systems."""

    def __init__(
        self,
        timeout: float | None = None,
        content_type: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout or settings.record_matcher_timeout
        self.content_type = content_type or settings.record_matcher_content_type
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def put_message(self, url: str, message: dict[str, Any]) -> httpx.Response:
        """
        PUT a FHIR message bundle to the given URL.

        The response is returned whatever its status; only transport
        failures raise.

        Args:
            url: Full URL of the Bundle on the record matcher's FHIR server
            message: FHIR message Bundle as JSON

        Returns:
            The server's response

        Raises:
            httpx.HTTPError: If the server cannot be reached
        """
        client = await self._get_client()
        return await client.put(
            url,
            json=message,
            headers={"Content-Type": self.content_type},
        )
