"""Tests for record match request submission."""

from unittest.mock import AsyncMock

import httpx
import pytest

from ptmatch.exceptions import DispatchError
from ptmatch.matching.dispatcher import prep_endpoint, submit_request
from ptmatch.matching.request_builder import build_record_match_request
from ptmatch.models.resources import (
    MatchingMode,
    RecordMatchRequest,
    RecordMatchSystemInterface,
    RecordSet,
)


@pytest.fixture
def request_message(
    system_interface: RecordMatchSystemInterface,
    master_record_set: RecordSet,
) -> RecordMatchRequest:
    return build_record_match_request(
        MatchingMode.DEDUPLICATION,
        master_record_set,
        system_interface,
        system_interface.response_endpoint,
    )


class TestPrepEndpoint:
    """Tests for prep_endpoint."""

    @pytest.mark.parametrize(
        "base_url",
        [
            "http://fhir.example.org",
            "http://fhir.example.org/",
            "http://fhir.example.org/Bundle",
            "http://fhir.example.org/Bundle/",
        ],
    )
    def test_always_ends_in_bundle_id(self, base_url: str) -> None:
        """Every form of server endpoint yields the same Bundle URL."""
        assert prep_endpoint(base_url, "abc") == "http://fhir.example.org/Bundle/abc"

    def test_keeps_base_path(self) -> None:
        assert (
            prep_endpoint("http://fhir.example.org/fhir", "abc")
            == "http://fhir.example.org/fhir/Bundle/abc"
        )


class TestSubmitRequest:
    """Tests for submit_request."""

    @pytest.mark.anyio
    async def test_success_status(
        self,
        request_message: RecordMatchRequest,
        system_interface: RecordMatchSystemInterface,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        """A 2xx answer is recorded as sent."""
        status = await submit_request(
            request_message, system_interface, mock_record_matcher_service
        )

        assert status.message == "Request Sent [201 Created]"
        assert request_message.submitted_on is not None

        url, body = mock_record_matcher_service.put_message.call_args.args
        assert url == (
            f"http://fhir.example.org/fhir/Bundle/{request_message.correlation_id}"
        )
        assert body["type"] == "message"

    @pytest.mark.anyio
    async def test_error_status_is_not_fatal(
        self,
        request_message: RecordMatchRequest,
        system_interface: RecordMatchSystemInterface,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        """A non-2xx answer is recorded as an error status."""
        mock_record_matcher_service.put_message.return_value = httpx.Response(500)

        status = await submit_request(
            request_message, system_interface, mock_record_matcher_service
        )

        assert status.message == (
            "Error Sending Request to Record Matcher [500 Internal Server Error]"
        )

    @pytest.mark.anyio
    async def test_unreachable_server_raises(
        self,
        request_message: RecordMatchRequest,
        system_interface: RecordMatchSystemInterface,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        """Transport failures abort submission."""
        mock_record_matcher_service.put_message.side_effect = httpx.ConnectError(
            "connection refused"
        )

        with pytest.raises(DispatchError):
            await submit_request(
                request_message, system_interface, mock_record_matcher_service
            )
