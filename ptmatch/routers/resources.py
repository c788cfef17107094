"""
Generic CRUD endpoints for stored resources.

Routes are registered per ResourceKind. List endpoints accept equality
filters on the fields named in SEARCH_PARAMS, using their JSON names.
"""

import logging
from enum import Enum
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response, status
from pydantic import BaseModel

from ptmatch.exceptions import ResourceNotFoundError
from ptmatch.models.resources import ResourceKind
from ptmatch.routers.deps import ResourceIdDep, StoreDep

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_PARAMS: dict[ResourceKind, frozenset[str]] = {
    ResourceKind.RECORD_MATCH_CONFIGURATION: frozenset(
        {
            "name",
            "matchingMode",
            "recordResourceType",
            "recordMatchSystemInterfaceId",
            "masterRecordSetId",
            "queryRecordSetId",
        }
    ),
    ResourceKind.RECORD_MATCH_SYSTEM_INTERFACE: frozenset(
        {"name", "destinationEndpoint", "serverEndpoint", "responseEndpoint"}
    ),
    ResourceKind.RECORD_SET: frozenset({"name", "resourceType"}),
    ResourceKind.RECORD_MATCH_JOB: frozenset(
        {
            "note",
            "matchingMode",
            "recordResourceType",
            "recordMatchConfigurationId",
            "recordMatchSystemInterfaceId",
            "masterRecordSetId",
            "queryRecordSetId",
        }
    ),
}

# Kinds created through POST /{kind}; jobs have their own creation endpoint
CREATABLE_KINDS = (
    ResourceKind.RECORD_MATCH_CONFIGURATION,
    ResourceKind.RECORD_MATCH_SYSTEM_INTERFACE,
    ResourceKind.RECORD_SET,
)


def search_filters(kind: ResourceKind, request: Request) -> dict[str, Any]:
    """Turn list query parameters into a store filter; unknown parameters are skipped."""
    allowed = SEARCH_PARAMS[kind]
    filters: dict[str, Any] = {}
    for name, value in request.query_params.items():
        if name not in allowed:
            logger.debug("Ignoring search parameter %s for %s", name, kind.value)
            continue
        filters[name] = value
    return filters


def resource_location(kind: ResourceKind, resource_id: str) -> str:
    return f"/{kind.value}/{resource_id}"


def _not_found(e: ResourceNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def register_resource_routes(api: APIRouter, kind: ResourceKind) -> None:
    """Add list, read, replace and delete routes (and create where allowed) for kind."""
    model: type[BaseModel] = kind.model
    path = f"/{kind.value}"
    tags: list[str | Enum] = [kind.value]

    async def list_resources(request: Request, store: StoreDep) -> list[Any]:
        return await store.find(kind, search_filters(kind, request))

    async def get_resource(resource_id: ResourceIdDep, store: StoreDep) -> Any:
        try:
            return await store.load(kind, resource_id)
        except ResourceNotFoundError as e:
            raise _not_found(e) from e

    async def create_resource(
        resource: model,  # type: ignore[valid-type]
        store: StoreDep,
        response: Response,
    ) -> Any:
        created = await store.persist(kind, resource)
        logger.info("Created %s %s", kind.value, created.id)
        response.headers["Location"] = resource_location(kind, created.id)
        return created

    async def update_resource(
        resource_id: ResourceIdDep,
        resource: model,  # type: ignore[valid-type]
        store: StoreDep,
        response: Response,
    ) -> Any:
        updated, created = await store.update(kind, resource_id, resource)
        response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
        response.headers["Location"] = resource_location(kind, updated.id)
        return updated

    async def delete_resource(resource_id: ResourceIdDep, store: StoreDep) -> Response:
        if not await store.delete(kind, resource_id):
            raise _not_found(ResourceNotFoundError(kind.value, resource_id))
        logger.info("Deleted %s %s", kind.value, resource_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    api.add_api_route(
        path,
        list_resources,
        methods=["GET"],
        response_model=list[model],  # type: ignore[valid-type]
        response_model_exclude_none=True,
        tags=tags,
        name=f"list_{kind.collection}",
    )
    if kind in CREATABLE_KINDS:
        api.add_api_route(
            path,
            create_resource,
            methods=["POST"],
            response_model=model,
            response_model_exclude_none=True,
            status_code=status.HTTP_201_CREATED,
            tags=tags,
            name=f"create_{kind.collection}",
        )
    api.add_api_route(
        f"{path}/{{resource_id}}",
        get_resource,
        methods=["GET"],
        response_model=model,
        response_model_exclude_none=True,
        tags=tags,
        name=f"get_{kind.collection}",
    )
    api.add_api_route(
        f"{path}/{{resource_id}}",
        update_resource,
        methods=["PUT"],
        response_model=model,
        response_model_exclude_none=True,
        tags=tags,
        name=f"update_{kind.collection}",
    )
    api.add_api_route(
        f"{path}/{{resource_id}}",
        delete_resource,
        methods=["DELETE"],
        status_code=status.HTTP_204_NO_CONTENT,
        tags=tags,
        name=f"delete_{kind.collection}",
    )


for _kind in SEARCH_PARAMS:
    register_resource_routes(router, _kind)
