"""Tests for the record matcher HTTP client."""

import json

import httpx
import pytest

from ptmatch.services.record_matcher_service import RecordMatcherService


class TestPutMessage:
    """Tests for RecordMatcherService.put_message."""

    @pytest.mark.anyio
    async def test_puts_message_json(self) -> None:
        """The message is PUT as JSON with the configured content type."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        service = RecordMatcherService(
            content_type="application/json+fhir",
            transport=httpx.MockTransport(handler),
        )
        try:
            response = await service.put_message(
                "http://fhir.example.org/Bundle/abc",
                {"resourceType": "Bundle", "id": "abc"},
            )
        finally:
            await service.close()

        assert response.status_code == 200
        assert seen[0].method == "PUT"
        assert str(seen[0].url) == "http://fhir.example.org/Bundle/abc"
        assert seen[0].headers["Content-Type"] == "application/json+fhir"
        assert json.loads(seen[0].content) == {"resourceType": "Bundle", "id": "abc"}

    @pytest.mark.anyio
    async def test_error_status_is_returned(self) -> None:
        """Error answers are returned, not raised."""
        service = RecordMatcherService(
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        try:
            response = await service.put_message("http://fhir.example.org/Bundle/abc", {})
        finally:
            await service.close()

        assert response.status_code == 503

    @pytest.mark.anyio
    async def test_transport_errors_raise(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        service = RecordMatcherService(transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(httpx.ConnectError):
                await service.put_message("http://fhir.example.org/Bundle/abc", {})
        finally:
            await service.close()

    def test_defaults_from_settings(self) -> None:
        service = RecordMatcherService()

        assert service.timeout == 30.0
        assert service.content_type == "application/json"
