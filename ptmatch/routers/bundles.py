"""
Generic Bundle endpoints.

Record matching systems deliver their response messages by writing Bundles
here. Every write is passed to the response correlator once stored.
"""

import logging

from fastapi import APIRouter, HTTPException, Response, status

from ptmatch.exceptions import CorrelationError, ResourceNotFoundError
from ptmatch.matching.correlator import correlate_response
from ptmatch.models.fhir import Bundle
from ptmatch.models.resources import ResourceKind, new_object_id
from ptmatch.routers.deps import StoreDep
from ptmatch.services.store_service import ResourceStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/Bundle", tags=["Bundle"])


async def _store_and_correlate(
    store: ResourceStore, bundle_id: str, bundle: Bundle
) -> tuple[Bundle, bool]:
    stored, created = await store.update(ResourceKind.BUNDLE, bundle_id, bundle)
    try:
        result = await correlate_response(stored, store)
    except CorrelationError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e

    if not result.outcome.ignored:
        logger.info(
            "Bundle %s correlated with job %s: %s",
            bundle_id,
            result.job_id,
            result.outcome.value,
        )
    return stored, created


@router.post(
    "",
    response_model=Bundle,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_bundle(bundle: Bundle, store: StoreDep) -> Bundle:
    """
    Store a Bundle, keeping its id when it has one.

    Keeping the sender's id makes a redelivered response message land on the
    same stored Bundle and be recognised as a duplicate by its job.
    """
    bundle_id = bundle.id or new_object_id()
    stored, _ = await _store_and_correlate(store, bundle_id, bundle)
    return stored


@router.put("/{bundle_id}", response_model=Bundle, response_model_exclude_none=True)
async def update_bundle(
    bundle_id: str,
    bundle: Bundle,
    store: StoreDep,
    response: Response,
) -> Bundle:
    """Create or replace the Bundle stored under bundle_id."""
    stored, created = await _store_and_correlate(store, bundle_id, bundle)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return stored


@router.get("/{bundle_id}", response_model=Bundle, response_model_exclude_none=True)
async def get_bundle(bundle_id: str, store: StoreDep) -> Bundle:
    try:
        bundle: Bundle = await store.load(ResourceKind.BUNDLE, bundle_id)
    except ResourceNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    return bundle
