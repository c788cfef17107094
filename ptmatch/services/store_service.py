"""
Resource store for configuration resources, jobs and inbound bundles.

Backed by MongoDB through motor. Each ResourceKind maps to one collection;
the resource id is stored as the document _id. Job mutations are expressed
as field-scoped single-document updates ($push / $set) so concurrent
deliveries for a job never rewrite each other's fields.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pydantic import BaseModel
from pymongo.errors import PyMongoError

from ptmatch.exceptions import ResourceNotFoundError, StoreError
from ptmatch.models.resources import (
    Meta,
    RecordMatchJob,
    RecordMatchJobMetrics,
    RecordMatchResponse,
    ResourceKind,
    StatusEntry,
    StoreModel,
    new_object_id,
    utcnow,
)
from ptmatch.settings import settings

logger = logging.getLogger(__name__)

# Path of the request MessageHeader id inside a stored job
REQUEST_HEADER_ID_FIELD = "request.message.entry.0.resource.id"

# Fields returned by the metrics listing
METRICS_PROJECTION = {
    "meta": 1,
    "metrics": 1,
    "recordMatchConfigurationId": 1,
    "recordMatchSystemInterfaceId": 1,
    "matchingMode": 1,
    "recordResourceType": 1,
    "masterRecordSetId": 1,
    "queryRecordSetId": 1,
}


class ResourceStore(Protocol):
    """Operations the service needs from its document store."""

    async def load(self, kind: ResourceKind, resource_id: str) -> Any: ...

    async def persist(self, kind: ResourceKind, resource: BaseModel) -> Any: ...

    async def update(
        self, kind: ResourceKind, resource_id: str, resource: BaseModel
    ) -> tuple[Any, bool]: ...

    async def delete(self, kind: ResourceKind, resource_id: str) -> bool: ...

    async def find(
        self, kind: ResourceKind, filters: dict[str, Any] | None = None
    ) -> list[Any]: ...

    async def find_jobs(
        self,
        system_interface_id: str | None = None,
        record_set_id: str | None = None,
    ) -> list[RecordMatchJob]: ...

    async def find_job_by_request_id(
        self, request_id: str
    ) -> RecordMatchJob | None: ...

    async def append_job_response(
        self, job_id: str, response: RecordMatchResponse
    ) -> bool: ...

    async def push_job_status(self, job_id: str, message: str) -> None: ...

    async def set_job_metrics(
        self, job_id: str, metrics: RecordMatchJobMetrics, message: str
    ) -> None: ...

    async def ping(self) -> bool: ...


def dump(resource: BaseModel) -> dict[str, Any]:
    """Serialize an embedded value (response, status, metrics) for storage."""
    return resource.model_dump(mode="python", by_alias=True, exclude_none=True)


def to_document(resource: BaseModel) -> dict[str, Any]:
    """Serialize a top-level resource for storage, moving id to _id."""
    doc = dump(resource)
    if "id" in doc:
        doc["_id"] = doc.pop("id")
    return doc


def from_document(kind: ResourceKind, doc: dict[str, Any]) -> Any:
    """Rebuild a resource model from a stored document."""
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    return kind.model.model_validate(data)


def stamp_created(resource: BaseModel) -> None:
    """Set createdOn and lastUpdatedOn on a stored resource."""
    if isinstance(resource, StoreModel) and hasattr(resource, "meta"):
        now = utcnow()
        resource.meta = Meta(created_on=now, last_updated_on=now)  # type: ignore[attr-defined]


@asynccontextmanager
async def _store_errors(action: str) -> AsyncIterator[None]:
    """Translate driver errors into StoreError."""
    try:
        yield
    except PyMongoError as e:
        logger.warning("Resource store error while trying to %s: %s", action, e)
        raise StoreError(f"Failed to {action}: {e}") from e


class MongoResourceStore:
    """ResourceStore backed by a MongoDB database."""

    def __init__(self, client: AsyncIOMotorClient, database_name: str):
        self._client = client
        self._database: AsyncIOMotorDatabase = client[database_name]

    def _collection(self, kind: ResourceKind) -> AsyncIOMotorCollection:
        return self._database[kind.collection]

    async def ensure_indexes(self) -> None:
        """Create the indexes used by correlation and the metrics listing."""
        jobs = self._collection(ResourceKind.RECORD_MATCH_JOB)
        async with _store_errors("create job indexes"):
            await jobs.create_index([(REQUEST_HEADER_ID_FIELD, 1)])
            await jobs.create_index([("recordMatchSystemInterfaceId", 1)])
            await jobs.create_index([("masterRecordSetId", 1)])
            await jobs.create_index([("queryRecordSetId", 1)])
        logger.info("Resource store indexes ready")

    async def load(self, kind: ResourceKind, resource_id: str) -> Any:
        async with _store_errors(f"load {kind.value} {resource_id}"):
            doc = await self._collection(kind).find_one({"_id": resource_id})
        if doc is None:
            raise ResourceNotFoundError(kind.value, resource_id)
        return from_document(kind, doc)

    async def persist(self, kind: ResourceKind, resource: BaseModel) -> Any:
        """Insert a resource under a newly generated id."""
        resource.id = new_object_id()  # type: ignore[attr-defined]
        stamp_created(resource)
        logger.info(
            "Persisting %s %s in %s",
            kind.value,
            resource.id,  # type: ignore[attr-defined]
            kind.collection,
        )
        async with _store_errors(f"persist {kind.value}"):
            await self._collection(kind).insert_one(to_document(resource))
        return resource

    async def update(
        self, kind: ResourceKind, resource_id: str, resource: BaseModel
    ) -> tuple[Any, bool]:
        """
        Replace (or create) the resource stored under resource_id.

        Returns:
            Tuple of (stored resource, True if it did not exist before)
        """
        collection = self._collection(kind)
        async with _store_errors(f"update {kind.value} {resource_id}"):
            existing = await collection.find_one({"_id": resource_id}, {"meta": 1})
            created = existing is None

            resource.id = resource_id  # type: ignore[attr-defined]
            if isinstance(resource, StoreModel) and hasattr(resource, "meta"):
                now = utcnow()
                created_on = now
                if existing and existing.get("meta", {}).get("createdOn"):
                    created_on = existing["meta"]["createdOn"]
                resource.meta = Meta(created_on=created_on, last_updated_on=now)  # type: ignore[attr-defined]

            await collection.replace_one(
                {"_id": resource_id}, to_document(resource), upsert=True
            )
        return resource, created

    async def delete(self, kind: ResourceKind, resource_id: str) -> bool:
        async with _store_errors(f"delete {kind.value} {resource_id}"):
            result = await self._collection(kind).delete_one({"_id": resource_id})
        return bool(result.deleted_count)

    async def find(
        self, kind: ResourceKind, filters: dict[str, Any] | None = None
    ) -> list[Any]:
        async with _store_errors(f"search {kind.value}"):
            docs = await self._collection(kind).find(filters or {}).to_list(None)
        return [from_document(kind, doc) for doc in docs]

    async def find_jobs(
        self,
        system_interface_id: str | None = None,
        record_set_id: str | None = None,
    ) -> list[RecordMatchJob]:
        """
        List jobs with their metrics, optionally for one interface or record set.

        A record set matches jobs using it as either master or query set and
        takes precedence over the interface filter.
        """
        query: dict[str, Any] = {}
        if record_set_id:
            query = {
                "$or": [
                    {"masterRecordSetId": record_set_id},
                    {"queryRecordSetId": record_set_id},
                ]
            }
        elif system_interface_id:
            query = {"recordMatchSystemInterfaceId": system_interface_id}

        collection = self._collection(ResourceKind.RECORD_MATCH_JOB)
        async with _store_errors("list job metrics"):
            docs = await collection.find(query, METRICS_PROJECTION).to_list(None)
        return [from_document(ResourceKind.RECORD_MATCH_JOB, doc) for doc in docs]

    async def find_job_by_request_id(self, request_id: str) -> RecordMatchJob | None:
        """Find the job whose request MessageHeader has the given id."""
        collection = self._collection(ResourceKind.RECORD_MATCH_JOB)
        async with _store_errors(f"find job for request {request_id}"):
            doc = await collection.find_one({REQUEST_HEADER_ID_FIELD: request_id})
        if doc is None:
            return None
        job: RecordMatchJob = from_document(ResourceKind.RECORD_MATCH_JOB, doc)
        return job

    async def append_job_response(
        self, job_id: str, response: RecordMatchResponse
    ) -> bool:
        """
        Push a response onto a job unless one with the same message id is stored.

        The duplicate check is part of the update filter, so two deliveries of
        the same message cannot both be appended.

        Returns:
            True if the response was appended, False if it was already present

        Raises:
            ResourceNotFoundError: If the job no longer exists
        """
        query: dict[str, Any] = {"_id": job_id}
        if response.message.id:
            query["responses.message.id"] = {"$ne": response.message.id}

        collection = self._collection(ResourceKind.RECORD_MATCH_JOB)
        async with _store_errors(f"add response to job {job_id}"):
            result = await collection.update_one(
                query, {"$push": {"responses": dump(response)}}
            )
        if result.modified_count == 1:
            return True

        async with _store_errors(f"load job {job_id}"):
            exists = await collection.count_documents({"_id": job_id}, limit=1)
        if not exists:
            raise ResourceNotFoundError(ResourceKind.RECORD_MATCH_JOB.value, job_id)
        return False

    async def push_job_status(self, job_id: str, message: str) -> None:
        status = StatusEntry(message=message)
        collection = self._collection(ResourceKind.RECORD_MATCH_JOB)
        async with _store_errors(f"update status of job {job_id}"):
            await collection.update_one(
                {"_id": job_id},
                {
                    "$set": {"meta.lastUpdatedOn": status.created_on},
                    "$push": {"status": dump(status)},
                },
            )

    async def set_job_metrics(
        self, job_id: str, metrics: RecordMatchJobMetrics, message: str
    ) -> None:
        status = StatusEntry(message=message)
        collection = self._collection(ResourceKind.RECORD_MATCH_JOB)
        async with _store_errors(f"update metrics of job {job_id}"):
            await collection.update_one(
                {"_id": job_id},
                {
                    "$set": {
                        "metrics": dump(metrics),
                        "meta.lastUpdatedOn": status.created_on,
                    },
                    "$push": {"status": dump(status)},
                },
            )

    async def ping(self) -> bool:
        """Check that the database answers."""
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("Resource store ping failed: %s", e)
            return False

    def close(self) -> None:
        self._client.close()


def create_resource_store() -> MongoResourceStore:
    """Create a MongoResourceStore with default configuration."""
    client: AsyncIOMotorClient = AsyncIOMotorClient(
        settings.mongodb_uri,
        serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
        tz_aware=True,
    )
    return MongoResourceStore(client, settings.mongodb_database)
