"""Health check endpoint."""

from fastapi import APIRouter

from ptmatch.routers.deps import StoreDep
from ptmatch.schemas.health import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(store: StoreDep) -> HealthResponse:
    """Check service health including resource store connectivity."""
    store_healthy = await store.ping()

    return HealthResponse(
        status="healthy" if store_healthy else "degraded",
        store=store_healthy,
    )
