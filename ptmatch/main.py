"""ptmatch - Patient record matching test harness."""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ptmatch import __version__
from ptmatch.clients.record_matcher import close_record_matcher_service
from ptmatch.clients.store import close_resource_store, get_resource_store
from ptmatch.exceptions import StoreError
from ptmatch.routers import answer_key, bundles, health, jobs, resources, stats
from ptmatch.services.request_stats import RequestStats
from ptmatch.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan management."""
    # Startup
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("ptmatch %s starting (database=%s)", __version__, settings.mongodb_database)
    try:
        await get_resource_store().ensure_indexes()
    except StoreError as e:
        logger.warning("Could not create resource store indexes: %s", e)
    yield
    # Shutdown
    await close_record_matcher_service()
    close_resource_store()


app = FastAPI(
    title="ptmatch",
    description="Patient record matching test harness - submit record match jobs and score the results",
    version=__version__,
    lifespan=lifespan,
)
app.state.request_stats = RequestStats()


@app.middleware("http")
async def count_requests(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Record status code and response time of every request."""
    start = time.perf_counter()
    response = await call_next(request)
    request.app.state.request_stats.record(
        response.status_code, time.perf_counter() - start
    )
    return response


@app.exception_handler(StoreError)
async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
    """Handle resource store failures."""
    logger.warning("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Resource store error"},
    )


@app.exception_handler(ValidationError)
async def handle_validation_error(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """Handle Pydantic ValidationError and return 422."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors(include_url=False, include_context=False)},
    )


@app.exception_handler(Exception)
async def handle_unhandled_exceptions(request: Request, exc: Exception) -> JSONResponse:
    """Catch and log all unhandled exceptions."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Register routers; jobs before resources so POST /RecordMatchJob is the job endpoint
app.include_router(health.router)
app.include_router(stats.router)
app.include_router(jobs.router)
app.include_router(bundles.router)
app.include_router(answer_key.router)
app.include_router(resources.router)


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint."""
    return {"service": "ptmatch", "version": __version__}
