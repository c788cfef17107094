"""Record match job endpoints."""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from ptmatch.exceptions import (
    DependencyLoadError,
    DispatchError,
    ResourceNotFoundError,
    ValidationError,
)
from ptmatch.matching.jobs import create_record_match_job
from ptmatch.matching.links import get_best_links, get_worst_links
from ptmatch.models.resources import Link, RecordMatchJob, ResourceKind, is_object_id
from ptmatch.routers.deps import RecordMatcherServiceDep, ResourceIdDep, StoreDep
from ptmatch.schemas.job_schemas import RecordMatchJobCreate, RecordMatchJobSummary
from ptmatch.settings import settings

router = APIRouter(tags=["RecordMatchJob"])


@router.post(
    "/RecordMatchJob",
    response_model=RecordMatchJob,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_job(
    request: RecordMatchJobCreate,
    store: StoreDep,
    record_matcher: RecordMatcherServiceDep,
) -> RecordMatchJob:
    """
    Create a record match job and submit its request.

    The request message is PUT to the system interface's server endpoint.
    An error answer from that server is recorded in the job status; only an
    unreachable server fails the call.
    """
    try:
        return await create_record_match_job(request.to_job(), store, record_matcher)

    except (ValidationError, DependencyLoadError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    except DispatchError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e


@router.get(
    "/RecordMatchJobMetrics",
    response_model=list[RecordMatchJobSummary],
    response_model_exclude_none=True,
)
async def list_job_metrics(
    store: StoreDep,
    system_interface_id: Annotated[
        str | None, Query(alias="recordMatchSystemInterfaceId")
    ] = None,
    record_set_id: Annotated[str | None, Query(alias="recordSetId")] = None,
) -> list[RecordMatchJobSummary]:
    """
    List job metrics, for all jobs or those of one system interface or record set.

    Identifiers that are not valid ObjectIds are ignored.
    """
    jobs = await store.find_jobs(
        system_interface_id=(
            system_interface_id if is_object_id(system_interface_id) else None
        ),
        record_set_id=record_set_id if is_object_id(record_set_id) else None,
    )
    return [RecordMatchJobSummary.from_job(job) for job in jobs]


def parse_limit(limit: str | None) -> int:
    """Links limit; missing, invalid and non-positive values mean the default."""
    try:
        value = int(limit) if limit is not None else 0
    except ValueError:
        value = 0
    return value if value > 0 else settings.links_default_limit


@router.get("/RecordMatchJob/{resource_id}/links", response_model=list[Link])
async def get_job_links(
    resource_id: ResourceIdDep,
    store: StoreDep,
    category: str | None = None,
    limit: str | None = None,
) -> list[Link]:
    """Best (default) or worst scored links reported for a job, lowest score first."""
    try:
        job: RecordMatchJob = await store.load(ResourceKind.RECORD_MATCH_JOB, resource_id)
    except ResourceNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e

    count = parse_limit(limit)
    if category == "worst":
        return get_worst_links(job, count)
    return get_best_links(job, count)
