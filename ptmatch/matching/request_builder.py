"""
Record match request construction.

A request is a FHIR message Bundle:
- entry 0: MessageHeader with a fresh id (the correlation id), the
  record-match event, and data references to the following entries
- entry 1: Parameters describing the master record set
- entry 2: Parameters describing the query record set (query mode only)

Responses echo the header id in MessageHeader.response.identifier, which is
how they are matched back to the job that issued the request.
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from ptmatch.exceptions import DependencyLoadError, ResourceNotFoundError, ValidationError
from ptmatch.models.fhir import (
    Bundle,
    BundleEntry,
    Coding,
    MessageDestination,
    MessageHeader,
    MessageSource,
    Parameters,
    ParametersParameter,
    Reference,
)
from ptmatch.models.resources import (
    MatchingMode,
    Meta,
    RecordMatchJob,
    RecordMatchRequest,
    RecordMatchSystemInterface,
    RecordSet,
    ResourceKind,
    new_object_id,
    utcnow,
)
from ptmatch.services.store_service import ResourceStore

logger = logging.getLogger(__name__)

RECORD_MATCH_EVENT_SYSTEM = "http://github.com/mitre/ptmatch/fhir/message-events"
RECORD_MATCH_EVENT_CODE = "record-match"


def is_record_match_event(event: Coding | None) -> bool:
    """Whether a MessageHeader event is the record-match event."""
    return (
        event is not None
        and event.code == RECORD_MATCH_EVENT_CODE
        and event.system == RECORD_MATCH_EVENT_SYSTEM
    )


@dataclass
class RequestDependencies:
    """Stored resources a record match request is built from."""

    system_interface: RecordMatchSystemInterface
    master_record_set: RecordSet
    query_record_set: RecordSet | None = None


async def _load_dependency(
    store: ResourceStore,
    kind: ResourceKind,
    resource_id: str | None,
    description: str,
) -> Any:
    if not resource_id:
        raise DependencyLoadError(f"No {description} specified")
    try:
        return await store.load(kind, resource_id)
    except ResourceNotFoundError as e:
        raise DependencyLoadError(f"Unable to find {description} {resource_id}") from e


async def load_request_dependencies(
    store: ResourceStore,
    job: RecordMatchJob,
) -> RequestDependencies:
    """
    Load the system interface and record sets referenced by a job.

    Raises:
        DependencyLoadError: If a referenced resource is not in the store
    """
    system_interface = await _load_dependency(
        store,
        ResourceKind.RECORD_MATCH_SYSTEM_INTERFACE,
        job.record_match_system_interface_id,
        "Record Match System Interface",
    )
    master_record_set = await _load_dependency(
        store, ResourceKind.RECORD_SET, job.master_record_set_id, "master Record Set"
    )

    query_record_set = None
    if job.matching_mode == MatchingMode.QUERY:
        query_record_set = await _load_dependency(
            store, ResourceKind.RECORD_SET, job.query_record_set_id, "query Record Set"
        )

    return RequestDependencies(
        system_interface=system_interface,
        master_record_set=master_record_set,
        query_record_set=query_record_set,
    )


def new_message_header(
    source_endpoint: str | None,
    system_interface: RecordMatchSystemInterface,
) -> MessageHeader:
    """Create the MessageHeader of a record match request."""
    return MessageHeader(
        id=str(uuid4()),
        timestamp=utcnow(),
        event=Coding(system=RECORD_MATCH_EVENT_SYSTEM, code=RECORD_MATCH_EVENT_CODE),
        source=MessageSource(endpoint=source_endpoint),
        destination=[
            MessageDestination(
                name=system_interface.name,
                endpoint=system_interface.destination_endpoint,
            )
        ],
    )


def record_set_entry(set_type: str, record_set: RecordSet) -> BundleEntry:
    """Build the Parameters entry describing one record set."""
    params = Parameters(
        id=str(uuid4()),
        parameter=[
            ParametersParameter(name="type", value_string=set_type),
            ParametersParameter(name="resourceType", value_string=record_set.resource_type),
            ParametersParameter(name="searchExpression", resource=record_set.parameters),
        ],
    )
    return BundleEntry(full_url=f"urn:uuid:{params.id}", resource=params)


def build_record_match_request(
    matching_mode: MatchingMode,
    master_record_set: RecordSet,
    system_interface: RecordMatchSystemInterface,
    source_endpoint: str | None,
    query_record_set: RecordSet | None = None,
) -> RecordMatchRequest:
    """
    Build a correlatable record match request.

    Args:
        matching_mode: deduplication or query
        master_record_set: Record set every mode matches against
        system_interface: Record matching system receiving the request
        source_endpoint: Where the record matcher should send its responses
        query_record_set: Record set to match against the master (query mode)

    Returns:
        RecordMatchRequest whose message has 2 entries (deduplication)
        or 3 entries (query)

    Raises:
        ValidationError: If query mode is requested without a query record set
    """
    if matching_mode == MatchingMode.QUERY and query_record_set is None:
        raise ValidationError("Query matching mode requires a query record set")

    header = new_message_header(source_endpoint, system_interface)

    data_entries = [record_set_entry("master", master_record_set)]
    if matching_mode == MatchingMode.QUERY:
        assert query_record_set is not None
        data_entries.append(record_set_entry(MatchingMode.QUERY.value, query_record_set))

    header.data = [Reference(reference=entry.full_url) for entry in data_entries]

    # The bundle shares the header id so the submission PUT is an upsert by id
    message = Bundle(
        id=header.id,
        type="message",
        timestamp=header.timestamp,
        entry=[BundleEntry(full_url=f"urn:uuid:{header.id}", resource=header)]
        + data_entries,
    )

    logger.debug(
        "Built record match request %s (mode=%s, entries=%d)",
        header.id,
        matching_mode.value,
        len(message.entry),
    )

    now = utcnow()
    return RecordMatchRequest(
        id=new_object_id(),
        meta=Meta(created_on=now, last_updated_on=now),
        message=message,
    )
