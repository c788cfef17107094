"""Shared dependencies for routers."""

from typing import Annotated

from fastapi import Depends, HTTPException, status

from ptmatch.clients.record_matcher import get_record_matcher_service
from ptmatch.clients.store import get_resource_store
from ptmatch.models.resources import is_object_id
from ptmatch.services.record_matcher_service import RecordMatcherService
from ptmatch.services.store_service import ResourceStore

# Typed dependency aliases for use in endpoint signatures
StoreDep = Annotated[ResourceStore, Depends(get_resource_store)]
RecordMatcherServiceDep = Annotated[
    RecordMatcherService, Depends(get_record_matcher_service)
]


def get_resource_id(resource_id: str) -> str:
    """Resource ids are store-native ObjectId hex strings."""
    if not is_object_id(resource_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid resource identifier: {resource_id}",
        )
    return resource_id


ResourceIdDep = Annotated[str, Depends(get_resource_id)]
