"""Test configuration and fixtures."""

from typing import Any, AsyncGenerator, Generator, Protocol
from unittest.mock import AsyncMock

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from ptmatch.clients.record_matcher import get_record_matcher_service
from ptmatch.clients.store import get_resource_store
from ptmatch.main import app
from ptmatch.matching.request_builder import (
    RECORD_MATCH_EVENT_CODE,
    RECORD_MATCH_EVENT_SYSTEM,
)
from ptmatch.models.fhir import Bundle, Parameters
from ptmatch.models.resources import (
    MatchingMode,
    RecordMatchJob,
    RecordMatchSystemInterface,
    RecordSet,
    ResourceKind,
)
from ptmatch.services.record_matcher_service import RecordMatcherService
from tests.fakes import InMemoryResourceStore

# Test ObjectIds
SYSTEM_INTERFACE_ID = "5f0c8b6e2f8fb814b56fa181"
MASTER_RECORD_SET_ID = "5f0c8b6e2f8fb814b56fa182"
QUERY_RECORD_SET_ID = "5f0c8b6e2f8fb814b56fa183"
MISSING_ID = "5f0c8b6e2f8fb814b56fa1ff"

PATIENT_1 = "http://records.example.org/Patient/1"
PATIENT_2 = "http://records.example.org/Patient/2"
PATIENT_3 = "http://records.example.org/Patient/3"
PATIENT_4 = "http://records.example.org/Patient/4"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Configure pytest-anyio to use asyncio."""
    return "asyncio"


def result_entry(
    source: str,
    targets: list[str],
    score: float = 1.0,
    match: str | None = None,
) -> dict[str, Any]:
    """A bare search-result entry linking source to targets."""
    search: dict[str, Any] = {"mode": "match", "score": score}
    if match is not None:
        search["extension"] = [
            {
                "url": "http://hl7.org/fhir/StructureDefinition/patient-mpi-match",
                "valueCode": match,
            }
        ]
    return {
        "fullUrl": source,
        "link": [{"relation": "self", "url": source}]
        + [{"relation": "related", "url": target} for target in targets],
        "search": search,
    }


def answer_key_bundle(*entries: dict[str, Any]) -> dict[str, Any]:
    """A document Bundle answer key holding the given result entries."""
    return {
        "resourceType": "Bundle",
        "id": "answer-key-1",
        "type": "document",
        "entry": [
            {
                "fullUrl": "urn:uuid:composition-1",
                "resource": {
                    "resourceType": "Composition",
                    "id": "composition-1",
                    "status": "final",
                    "title": "Answer Key",
                },
            },
            *entries,
        ],
    }


def response_message(
    request_id: str,
    *entries: dict[str, Any],
    message_id: str = "5f0c8b6e2f8fb814b56fa200",
    event_code: str = RECORD_MATCH_EVENT_CODE,
) -> dict[str, Any]:
    """A record match response message answering request_id."""
    return {
        "resourceType": "Bundle",
        "id": message_id,
        "type": "message",
        "entry": [
            {
                "fullUrl": "urn:uuid:response-header",
                "resource": {
                    "resourceType": "MessageHeader",
                    "id": "response-header",
                    "timestamp": "2016-05-12T10:30:00Z",
                    "event": {
                        "system": RECORD_MATCH_EVENT_SYSTEM,
                        "code": event_code,
                    },
                    "response": {"identifier": request_id, "code": "ok"},
                    "source": {"endpoint": "http://matcher.example.org"},
                },
            },
            *entries,
        ],
    }


@pytest.fixture
def system_interface() -> RecordMatchSystemInterface:
    return RecordMatchSystemInterface(
        id=SYSTEM_INTERFACE_ID,
        name="Test Matcher",
        destination_endpoint="http://matcher.example.org/match",
        server_endpoint="http://fhir.example.org/fhir",
        response_endpoint="http://ptmatch.example.org",
    )


@pytest.fixture
def master_record_set() -> RecordSet:
    return RecordSet(
        id=MASTER_RECORD_SET_ID,
        name="Master Patients",
        resource_type="Patient",
        parameters=Parameters.model_validate(
            {
                "resourceType": "Parameters",
                "parameter": [{"name": "resourceType", "valueString": "Patient"}],
            }
        ),
        answer_key=Bundle.model_validate(
            answer_key_bundle(result_entry(PATIENT_1, [PATIENT_2]))
        ),
    )


@pytest.fixture
def query_record_set() -> RecordSet:
    return RecordSet(
        id=QUERY_RECORD_SET_ID,
        name="Query Patients",
        resource_type="Patient",
        parameters=Parameters.model_validate(
            {
                "resourceType": "Parameters",
                "parameter": [{"name": "_count", "valueString": "50"}],
            }
        ),
    )


@pytest.fixture
def store(
    system_interface: RecordMatchSystemInterface,
    master_record_set: RecordSet,
    query_record_set: RecordSet,
) -> InMemoryResourceStore:
    """In-memory store holding the sample system interface and record sets."""
    store = InMemoryResourceStore()
    store.add(ResourceKind.RECORD_MATCH_SYSTEM_INTERFACE, system_interface)
    store.add(ResourceKind.RECORD_SET, master_record_set)
    store.add(ResourceKind.RECORD_SET, query_record_set)
    return store


@pytest.fixture
def dedup_job() -> RecordMatchJob:
    return RecordMatchJob(
        matching_mode=MatchingMode.DEDUPLICATION,
        record_resource_type="Patient",
        record_match_system_interface_id=SYSTEM_INTERFACE_ID,
        master_record_set_id=MASTER_RECORD_SET_ID,
    )


@pytest.fixture
def query_job() -> RecordMatchJob:
    return RecordMatchJob(
        matching_mode=MatchingMode.QUERY,
        record_resource_type="Patient",
        record_match_system_interface_id=SYSTEM_INTERFACE_ID,
        master_record_set_id=MASTER_RECORD_SET_ID,
        query_record_set_id=QUERY_RECORD_SET_ID,
    )


@pytest.fixture
def mock_record_matcher_service() -> AsyncMock:
    """Mock record matcher HTTP client for testing."""
    mock = AsyncMock(spec=RecordMatcherService)

    # Default: the FHIR server accepts the request message
    mock.put_message.return_value = httpx.Response(201)
    return mock


class ClientFactory(Protocol):
    """Protocol for client factory fixture."""

    def __call__(self) -> AsyncClient: ...


@pytest.fixture
def client_factory(
    store: InMemoryResourceStore,
    mock_record_matcher_service: AsyncMock,
) -> Generator[ClientFactory, None, None]:
    """Factory for creating test clients with mocked dependencies."""

    def _create_client() -> AsyncClient:
        app.dependency_overrides[get_resource_store] = lambda: store
        app.dependency_overrides[get_record_matcher_service] = (
            lambda: mock_record_matcher_service
        )

        transport = ASGITransport(app=app)
        return AsyncClient(transport=transport, base_url="http://testserver")

    yield _create_client

    app.dependency_overrides.clear()


@pytest.fixture
async def client(
    client_factory: ClientFactory,
) -> AsyncGenerator[AsyncClient, None]:
    """Async client for testing endpoints."""
    async with client_factory() as c:
        yield c
