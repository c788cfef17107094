"""Request statistics schemas."""

from pydantic import BaseModel


class StatsResponse(BaseModel):
    """Response model for the request statistics endpoint."""

    pid: int
    uptime_sec: float
    total_count: int
    total_status_code_count: dict[str, int]
    total_response_time_sec: float
    average_response_time_sec: float
