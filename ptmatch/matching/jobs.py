"""
Record match job creation.

A job is created from a RecordMatchJob body naming its system interface
and record sets directly, or through a stored RecordMatchConfiguration.
Creating a job builds the request message, PUTs it to the record matching
system and stores the job with the outcome as its first status entry.
"""

import logging

from ptmatch.exceptions import DependencyLoadError, ResourceNotFoundError, ValidationError
from ptmatch.matching.dispatcher import submit_request
from ptmatch.matching.request_builder import (
    build_record_match_request,
    load_request_dependencies,
)
from ptmatch.models.resources import (
    MatchingMode,
    RecordMatchConfiguration,
    RecordMatchJob,
    ResourceKind,
    is_object_id,
)
from ptmatch.services.record_matcher_service import RecordMatcherService
from ptmatch.services.store_service import ResourceStore

logger = logging.getLogger(__name__)

# Job fields that a configuration supplies when the job leaves them unset
_CONFIGURED_FIELDS = (
    "matching_mode",
    "record_resource_type",
    "record_match_system_interface_id",
    "master_record_set_id",
    "query_record_set_id",
)


def is_valid_job(job: RecordMatchJob) -> bool:
    """Whether the matching mode has the record sets it needs."""
    if not is_object_id(job.record_match_system_interface_id):
        return False
    if job.matching_mode == MatchingMode.DEDUPLICATION:
        return is_object_id(job.master_record_set_id)
    if job.matching_mode == MatchingMode.QUERY:
        return is_object_id(job.master_record_set_id) and is_object_id(
            job.query_record_set_id
        )
    return False


async def apply_configuration(store: ResourceStore, job: RecordMatchJob) -> None:
    """Fill unset job fields from the job's RecordMatchConfiguration."""
    configuration_id = job.record_match_configuration_id
    if configuration_id is None:
        return
    if not is_object_id(configuration_id):
        raise ValidationError("Invalid RecordMatchConfigurationId")

    try:
        configuration: RecordMatchConfiguration = await store.load(
            ResourceKind.RECORD_MATCH_CONFIGURATION, configuration_id
        )
    except ResourceNotFoundError as e:
        raise DependencyLoadError(
            f"Unable to find Record Match Configuration {configuration_id}"
        ) from e

    for name in _CONFIGURED_FIELDS:
        if getattr(job, name) is None:
            setattr(job, name, getattr(configuration, name))


async def create_record_match_job(
    job: RecordMatchJob,
    store: ResourceStore,
    record_matcher: RecordMatcherService,
) -> RecordMatchJob:
    """
    Build, submit and store a record match job.

    A record matcher that answers with an error status does not stop the
    job from being stored; its answer is recorded in the job status.

    Raises:
        ValidationError: If the job content or system interface is invalid
        DependencyLoadError: If a referenced resource is not in the store
        DispatchError: If the record matcher cannot be reached
    """
    await apply_configuration(store, job)

    if not is_valid_job(job):
        raise ValidationError("Invalid RecordMatchJob content")
    assert job.matching_mode is not None

    dependencies = await load_request_dependencies(store, job)
    system_interface = dependencies.system_interface
    if not system_interface.is_usable():
        raise ValidationError("Invalid Record Match System Interface")

    if job.record_resource_type is None:
        job.record_resource_type = dependencies.master_record_set.resource_type

    request = build_record_match_request(
        matching_mode=job.matching_mode,
        master_record_set=dependencies.master_record_set,
        system_interface=system_interface,
        source_endpoint=system_interface.response_endpoint,
        query_record_set=dependencies.query_record_set,
    )

    logger.info(
        "Submitting %s request %s to record matcher %s",
        job.matching_mode.value,
        request.correlation_id,
        system_interface.name or system_interface.id,
    )
    status = await submit_request(request, system_interface, record_matcher)

    job.request = request
    job.responses = []
    job.status = [status]

    stored: RecordMatchJob = await store.persist(ResourceKind.RECORD_MATCH_JOB, job)
    logger.info("Stored record match job %s (%s)", stored.id, status.message)
    return stored
