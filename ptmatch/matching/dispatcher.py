"""Submission of record match requests to record matching systems."""

import logging

import httpx

from ptmatch.exceptions import DispatchError
from ptmatch.models.resources import (
    RecordMatchRequest,
    RecordMatchSystemInterface,
    StatusEntry,
    utcnow,
)
from ptmatch.services.record_matcher_service import RecordMatcherService

logger = logging.getLogger(__name__)


def prep_endpoint(base_url: str, message_id: str) -> str:
    """
    Build the URL a request message is PUT to.

    The server endpoint may or may not already name the Bundle collection,
    with or without a trailing slash; the result always ends in
    /Bundle/<message_id>.
    """
    if base_url.endswith("/"):
        if not base_url.endswith("/Bundle/"):
            base_url += "Bundle/"
    elif base_url.endswith("/Bundle"):
        base_url += "/"
    else:
        base_url += "/Bundle/"
    return base_url + message_id


def _status_text(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


async def submit_request(
    request: RecordMatchRequest,
    system_interface: RecordMatchSystemInterface,
    record_matcher: RecordMatcherService,
) -> StatusEntry:
    """
    PUT a request message to the system interface's FHIR server.

    A non-2xx answer is reported in the returned status entry and is not
    an error.

    Raises:
        DispatchError: If the server cannot be reached
    """
    header_id = request.correlation_id
    if not header_id or not system_interface.server_endpoint:
        raise DispatchError("Request message has no header id or no server endpoint")

    url = prep_endpoint(system_interface.server_endpoint, header_id)

    request.submitted_on = utcnow()
    try:
        response = await record_matcher.put_message(url, request.message.to_json())
    except httpx.HTTPError as e:
        logger.warning("Failed to send record match request to %s: %s", url, e)
        raise DispatchError(f"Unable to reach record matcher at {url}: {e}") from e

    if response.is_success:
        logger.info("Record match request %s sent to %s", header_id, url)
        return StatusEntry(message=f"Request Sent [{_status_text(response)}]")

    logger.warning(
        "Record matcher at %s rejected request %s: %s",
        url,
        header_id,
        response.status_code,
    )
    return StatusEntry(
        message=f"Error Sending Request to Record Matcher [{_status_text(response)}]"
    )
