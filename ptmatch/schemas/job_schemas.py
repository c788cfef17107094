"""Schemas for record match job endpoints."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ptmatch.models.resources import (
    MatchingMode,
    Meta,
    RecordMatchJob,
    RecordMatchJobMetrics,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecordMatchJobCreate(CamelModel):
    """
    Request model for creating a record match job.

    Either name a stored configuration or give the matching mode, system
    interface and record sets inline. Inline fields override the
    configuration.
    """

    record_match_configuration_id: str | None = Field(
        default=None,
        description="Stored RecordMatchConfiguration to take job settings from",
    )
    note: str | None = None
    matching_mode: MatchingMode | None = None
    record_resource_type: str | None = Field(
        default=None,
        description="FHIR resource type of the records being matched (e.g., Patient)",
    )
    record_match_system_interface_id: str | None = None
    master_record_set_id: str | None = None
    query_record_set_id: str | None = Field(
        default=None,
        description="Record set matched against the master set (query mode only)",
    )

    def to_job(self) -> RecordMatchJob:
        return RecordMatchJob(**self.model_dump())


class RecordMatchJobSummary(CamelModel):
    """A job without its request, responses and status history."""

    id: str | None = None
    meta: Meta | None = None
    metrics: RecordMatchJobMetrics
    record_match_configuration_id: str | None = None
    record_match_system_interface_id: str | None = None
    matching_mode: MatchingMode | None = None
    record_resource_type: str | None = None
    master_record_set_id: str | None = None
    query_record_set_id: str | None = None

    @classmethod
    def from_job(cls, job: RecordMatchJob) -> "RecordMatchJobSummary":
        return cls.model_validate(job.model_dump(include=set(cls.model_fields)))
