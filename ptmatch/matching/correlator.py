"""
Correlation of inbound response messages with record match jobs.

Every Bundle written through the API passes through correlate_response().
Bundles that are not record match responses are ignored. A response is
matched to its job by the request MessageHeader id it echoes in
MessageHeader.response.identifier, appended once per message id, and then
folded into the job's metrics.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from ptmatch.exceptions import CorrelationError, PtmatchError, ResourceNotFoundError
from ptmatch.matching.metrics import update_job_metrics
from ptmatch.matching.request_builder import is_record_match_event
from ptmatch.models.fhir import Bundle
from ptmatch.models.resources import (
    Meta,
    RecordMatchJobMetrics,
    RecordMatchResponse,
    is_object_id,
    new_object_id,
    utcnow,
)
from ptmatch.services.store_service import ResourceStore

logger = logging.getLogger(__name__)


class CorrelationOutcome(str, Enum):
    """What correlate_response() did with a bundle."""

    NOT_A_MESSAGE = "not-a-message"
    NO_RESPONSE_FIELD = "message-no-response-field"
    NOT_RECORD_MATCH_EVENT = "not-record-match-event"
    DUPLICATE_RESPONSE = "duplicate-response"
    NEW_RESPONSE = "new-response"

    @property
    def ignored(self) -> bool:
        return self in (
            CorrelationOutcome.NOT_A_MESSAGE,
            CorrelationOutcome.NO_RESPONSE_FIELD,
            CorrelationOutcome.NOT_RECORD_MATCH_EVENT,
        )


@dataclass
class CorrelationResult:
    outcome: CorrelationOutcome
    job_id: str | None = None
    response_id: str | None = None
    metrics: RecordMatchJobMetrics | None = None
    metrics_error: str | None = None


def new_response(bundle: Bundle) -> RecordMatchResponse:
    """Wrap an inbound message for storage on its job."""
    response_id = bundle.id if is_object_id(bundle.id) else None
    if response_id is None:
        logger.warning(
            "Response message id %r is not an ObjectId; generating a new response id",
            bundle.id,
        )
        response_id = new_object_id()

    now = utcnow()
    return RecordMatchResponse(
        id=response_id,
        meta=Meta(created_on=now, last_updated_on=now),
        received_on=now,
        message=bundle,
    )


async def correlate_response(bundle: Bundle, store: ResourceStore) -> CorrelationResult:
    """
    Record a response message on the job that issued its request.

    Args:
        bundle: Bundle that was just written to the store
        store: Resource store holding the jobs

    Returns:
        CorrelationResult describing what happened

    Raises:
        CorrelationError: If the bundle is a record match response for a
            request no job issued
        StoreError: If a job update fails
    """
    if bundle.type != "message":
        return CorrelationResult(CorrelationOutcome.NOT_A_MESSAGE)

    header = bundle.message_header
    if header is None or header.response is None or not header.response.identifier:
        return CorrelationResult(CorrelationOutcome.NO_RESPONSE_FIELD)

    if not is_record_match_event(header.event):
        return CorrelationResult(CorrelationOutcome.NOT_RECORD_MATCH_EVENT)

    request_id = header.response.identifier
    job = await store.find_job_by_request_id(request_id)
    if job is None or job.id is None:
        logger.warning(
            "Unable to find record match job for response %s to request %s",
            bundle.id,
            request_id,
        )
        raise CorrelationError(request_id)

    response = new_response(bundle)
    try:
        appended = await store.append_job_response(job.id, response)
    except ResourceNotFoundError as e:
        logger.warning(
            "Record match job %s for request %s was removed before response %s was recorded",
            job.id,
            request_id,
            bundle.id,
        )
        raise CorrelationError(request_id) from e

    if not appended:
        logger.info("Response %s to job %s seen before; ignoring", bundle.id, job.id)
        await store.push_job_status(
            job.id, f"Duplicate Response Received and Ignored [{bundle.id}]"
        )
        return CorrelationResult(
            CorrelationOutcome.DUPLICATE_RESPONSE, job_id=job.id
        )

    await store.push_job_status(job.id, f"Response Received [{bundle.id}]")
    logger.info("Response %s recorded on job %s", bundle.id, job.id)

    result = CorrelationResult(
        CorrelationOutcome.NEW_RESPONSE, job_id=job.id, response_id=response.id
    )
    try:
        result.metrics = await update_job_metrics(store, job, bundle)
    except PtmatchError as e:
        logger.warning("Failed to update metrics of job %s: %s", job.id, e)
        result.metrics_error = str(e)
    return result
