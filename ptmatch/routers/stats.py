"""Request statistics endpoint."""

from fastapi import APIRouter, Request

from ptmatch.schemas.stats import StatsResponse

router = APIRouter(tags=["Stats"])


@router.get("/stats", response_model=StatsResponse)
async def request_stats(request: Request) -> StatsResponse:
    """Requests served since startup, by status code, with response times."""
    return StatsResponse.model_validate(request.app.state.request_stats.snapshot())
