"""
Configuration and job resources persisted in the resource store.

Field names are camelCase in JSON and in stored documents, matching the
FHIR conventions of the messages these resources carry. Identifiers are
BSON ObjectId hex strings assigned by the store.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ptmatch.models.fhir import Bundle, Parameters


def utcnow() -> datetime:
    """Current UTC time truncated to the millisecond precision MongoDB keeps."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def new_object_id() -> str:
    """Generate a fresh store-native identifier."""
    return str(ObjectId())


def is_object_id(value: str | None) -> bool:
    """Whether the value looks like a store-native identifier."""
    return bool(value) and ObjectId.is_valid(value)


class MatchingMode(str, Enum):
    """How the record matching system compares record sets."""

    DEDUPLICATION = "deduplication"
    QUERY = "query"


class StoreModel(BaseModel):
    """Base for stored resources."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Meta(StoreModel):
    created_on: datetime | None = None
    last_updated_on: datetime | None = None


class RecordMatchSystemInterface(StoreModel):
    """Describes how to reach an external record matching system."""

    id: str | None = None
    meta: Meta | None = None
    name: str | None = None
    description: str | None = None
    # where the record match system receives requests
    destination_endpoint: str | None = None
    # FHIR server the request message is PUT to; may differ from the destination
    server_endpoint: str | None = None
    # where the record match system sends its response messages
    response_endpoint: str | None = None

    def is_usable(self) -> bool:
        return bool(
            is_object_id(self.id)
            and self.destination_endpoint
            and self.server_endpoint
            and self.response_endpoint
        )


class RecordSet(StoreModel):
    """A named collection of source records, optionally with an answer key."""

    id: str | None = None
    meta: Meta | None = None
    name: str | None = None
    description: str | None = None
    resource_type: str | None = None
    parameters: Parameters | None = None
    answer_key: Bundle | None = None


class RecordMatchConfiguration(StoreModel):
    id: str | None = None
    meta: Meta | None = None
    name: str | None = None
    description: str | None = None
    matching_mode: MatchingMode | None = None
    # FHIR resource type of the records being matched (e.g., Patient)
    record_resource_type: str | None = None
    record_match_system_interface_id: str | None = None
    master_record_set_id: str | None = None
    query_record_set_id: str | None = None


class RecordMatchRequest(StoreModel):
    id: str | None = None
    meta: Meta | None = None
    message: Bundle
    submitted_on: datetime | None = None

    @property
    def correlation_id(self) -> str | None:
        """Identifier of the request MessageHeader, echoed by responses."""
        header = self.message.message_header
        return header.id if header else None


class RecordMatchResponse(StoreModel):
    id: str | None = None
    meta: Meta | None = None
    message: Bundle
    received_on: datetime | None = None


class RecordMatchJobMetrics(StoreModel):
    """Cumulative statistics for the results reported by a matching system."""

    f1: float = 0.0
    precision: float = 0.0
    recall: float = 0.0
    match_count: int = 0
    true_positive_count: int = 0
    false_positive_count: int = 0
    # answer-key sources matched at least once
    ground_truth_found: list[str] = Field(default_factory=list)


class StatusEntry(StoreModel):
    message: str
    created_on: datetime = Field(default_factory=utcnow)


class RecordMatchJob(StoreModel):
    """One submission of a record match request and everything it produced."""

    id: str | None = None
    meta: Meta | None = None
    note: str | None = None
    record_match_configuration_id: str | None = None
    request: RecordMatchRequest | None = None
    responses: list[RecordMatchResponse] = Field(default_factory=list)
    metrics: RecordMatchJobMetrics = Field(default_factory=RecordMatchJobMetrics)
    status: list[StatusEntry] = Field(default_factory=list)
    matching_mode: MatchingMode | None = None
    record_resource_type: str | None = None
    record_match_system_interface_id: str | None = None
    master_record_set_id: str | None = None
    query_record_set_id: str | None = None


class Link(BaseModel):
    """A suggested link between two records, as reported by a matching system."""

    source: str
    target: str
    match: str
    score: float


class ResourceKind(str, Enum):
    """Resource kinds held by the store; the value is the REST path segment."""

    RECORD_MATCH_CONFIGURATION = "RecordMatchConfiguration"
    RECORD_MATCH_SYSTEM_INTERFACE = "RecordMatchSystemInterface"
    RECORD_SET = "RecordSet"
    RECORD_MATCH_JOB = "RecordMatchJob"
    BUNDLE = "Bundle"

    @property
    def collection(self) -> str:
        """Collection name: the kind with a lowercase first letter, pluralized."""
        return self.value[0].lower() + self.value[1:] + "s"

    @property
    def model(self) -> type[BaseModel]:
        return RESOURCE_MODELS[self]


RESOURCE_MODELS: dict[ResourceKind, type[BaseModel]] = {
    ResourceKind.RECORD_MATCH_CONFIGURATION: RecordMatchConfiguration,
    ResourceKind.RECORD_MATCH_SYSTEM_INTERFACE: RecordMatchSystemInterface,
    ResourceKind.RECORD_SET: RecordSet,
    ResourceKind.RECORD_MATCH_JOB: RecordMatchJob,
    ResourceKind.BUNDLE: Bundle,
}
