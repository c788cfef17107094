"""Tests for record match job creation."""

from unittest.mock import AsyncMock

import httpx
import pytest

from ptmatch.exceptions import DependencyLoadError, DispatchError, ValidationError
from ptmatch.matching.jobs import create_record_match_job, is_valid_job
from ptmatch.models.resources import (
    MatchingMode,
    RecordMatchConfiguration,
    RecordMatchJob,
    RecordMatchSystemInterface,
    ResourceKind,
)
from tests.conftest import (
    MASTER_RECORD_SET_ID,
    MISSING_ID,
    QUERY_RECORD_SET_ID,
    SYSTEM_INTERFACE_ID,
)
from tests.fakes import InMemoryResourceStore


class TestIsValidJob:
    """Tests for is_valid_job."""

    def test_deduplication_needs_master_set(self, dedup_job: RecordMatchJob) -> None:
        assert is_valid_job(dedup_job)

        dedup_job.master_record_set_id = None
        assert not is_valid_job(dedup_job)

    def test_query_needs_both_sets(self, query_job: RecordMatchJob) -> None:
        assert is_valid_job(query_job)

        query_job.query_record_set_id = None
        assert not is_valid_job(query_job)

    def test_system_interface_id_must_be_object_id(
        self, dedup_job: RecordMatchJob
    ) -> None:
        dedup_job.record_match_system_interface_id = "not-an-id"

        assert not is_valid_job(dedup_job)

    def test_matching_mode_is_required(self, dedup_job: RecordMatchJob) -> None:
        dedup_job.matching_mode = None

        assert not is_valid_job(dedup_job)


class TestCreateRecordMatchJob:
    """Tests for create_record_match_job."""

    @pytest.mark.anyio
    async def test_creates_and_stores_job(
        self,
        store: InMemoryResourceStore,
        dedup_job: RecordMatchJob,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        """A job is submitted and stored with its request and first status."""
        job = await create_record_match_job(dedup_job, store, mock_record_matcher_service)

        assert job.id is not None
        assert job.meta is not None and job.meta.created_on is not None
        assert job.request is not None
        assert job.request.submitted_on is not None
        assert len(job.request.message.entry) == 2
        assert [s.message for s in job.status] == ["Request Sent [201 Created]"]

        stored = store.job(job.id)
        assert stored.request.correlation_id == job.request.correlation_id
        mock_record_matcher_service.put_message.assert_awaited_once()

    @pytest.mark.anyio
    async def test_query_job_sends_three_entries(
        self,
        store: InMemoryResourceStore,
        query_job: RecordMatchJob,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        job = await create_record_match_job(query_job, store, mock_record_matcher_service)

        assert len(job.request.message.entry) == 3

    @pytest.mark.anyio
    async def test_rejected_request_still_stores_job(
        self,
        store: InMemoryResourceStore,
        dedup_job: RecordMatchJob,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        mock_record_matcher_service.put_message.return_value = httpx.Response(404)

        job = await create_record_match_job(dedup_job, store, mock_record_matcher_service)

        assert job.status[0].message == (
            "Error Sending Request to Record Matcher [404 Not Found]"
        )
        assert store.job(job.id) is not None

    @pytest.mark.anyio
    async def test_unreachable_matcher_stores_nothing(
        self,
        store: InMemoryResourceStore,
        dedup_job: RecordMatchJob,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        mock_record_matcher_service.put_message.side_effect = httpx.ConnectTimeout(
            "timed out"
        )

        with pytest.raises(DispatchError):
            await create_record_match_job(dedup_job, store, mock_record_matcher_service)

        assert store.collections[ResourceKind.RECORD_MATCH_JOB] == {}

    @pytest.mark.anyio
    async def test_invalid_job(
        self,
        store: InMemoryResourceStore,
        query_job: RecordMatchJob,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        query_job.query_record_set_id = None

        with pytest.raises(ValidationError):
            await create_record_match_job(query_job, store, mock_record_matcher_service)

        mock_record_matcher_service.put_message.assert_not_called()

    @pytest.mark.anyio
    async def test_missing_dependency(
        self,
        store: InMemoryResourceStore,
        dedup_job: RecordMatchJob,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        dedup_job.record_match_system_interface_id = MISSING_ID

        with pytest.raises(DependencyLoadError):
            await create_record_match_job(dedup_job, store, mock_record_matcher_service)

        mock_record_matcher_service.put_message.assert_not_called()

    @pytest.mark.anyio
    async def test_unusable_system_interface(
        self,
        store: InMemoryResourceStore,
        dedup_job: RecordMatchJob,
        system_interface: RecordMatchSystemInterface,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        """A system interface needs all three endpoints."""
        system_interface.server_endpoint = None
        await store.update(
            ResourceKind.RECORD_MATCH_SYSTEM_INTERFACE,
            SYSTEM_INTERFACE_ID,
            system_interface,
        )

        with pytest.raises(ValidationError, match="System Interface"):
            await create_record_match_job(dedup_job, store, mock_record_matcher_service)

    @pytest.mark.anyio
    async def test_settings_from_configuration(
        self,
        store: InMemoryResourceStore,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        """Unset job fields are taken from the named configuration."""
        configuration = store.add(
            ResourceKind.RECORD_MATCH_CONFIGURATION,
            RecordMatchConfiguration(
                name="Query Patients",
                matching_mode=MatchingMode.QUERY,
                record_resource_type="Patient",
                record_match_system_interface_id=SYSTEM_INTERFACE_ID,
                master_record_set_id=MASTER_RECORD_SET_ID,
                query_record_set_id=QUERY_RECORD_SET_ID,
            ),
        )

        job = await create_record_match_job(
            RecordMatchJob(
                record_match_configuration_id=configuration.id, note="nightly run"
            ),
            store,
            mock_record_matcher_service,
        )

        assert job.matching_mode == MatchingMode.QUERY
        assert job.query_record_set_id == QUERY_RECORD_SET_ID
        assert job.note == "nightly run"
        assert len(job.request.message.entry) == 3

    @pytest.mark.anyio
    async def test_unknown_configuration(
        self,
        store: InMemoryResourceStore,
        mock_record_matcher_service: AsyncMock,
    ) -> None:
        with pytest.raises(DependencyLoadError):
            await create_record_match_job(
                RecordMatchJob(record_match_configuration_id=MISSING_ID),
                store,
                mock_record_matcher_service,
            )
