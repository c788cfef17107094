"""Tests for health endpoint."""

import pytest

from tests.conftest import ClientFactory
from tests.fakes import InMemoryResourceStore


class TestHealthEndpoint:
    """Tests for the /health endpoint."""

    @pytest.mark.anyio
    async def test_health_returns_healthy_when_store_available(
        self,
        client_factory: ClientFactory,
        store: InMemoryResourceStore,
    ) -> None:
        """Health check returns healthy when the resource store answers."""
        store.healthy = True

        async with client_factory() as client:
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["store"] is True

    @pytest.mark.anyio
    async def test_health_returns_degraded_when_store_unavailable(
        self,
        client_factory: ClientFactory,
        store: InMemoryResourceStore,
    ) -> None:
        """Health check returns degraded when the resource store is unreachable."""
        store.healthy = False

        async with client_factory() as client:
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["store"] is False

    @pytest.mark.anyio
    async def test_root(self, client_factory: ClientFactory) -> None:
        async with client_factory() as client:
            response = await client.get("/")

        assert response.json() == {"service": "ptmatch", "version": "0.1.0"}
