"""
Record match request/response protocol and result scoring.

This module handles:
- Building and submitting record match request messages
- Correlating response messages with the jobs that requested them
- Scoring reported links against answer keys
"""

from ptmatch.matching.correlator import (
    CorrelationOutcome,
    CorrelationResult,
    correlate_response,
)
from ptmatch.matching.jobs import create_record_match_job
from ptmatch.matching.links import get_best_links, get_links, get_worst_links
from ptmatch.matching.metrics import update_job_metrics
from ptmatch.matching.request_builder import build_record_match_request

__all__ = [
    "CorrelationOutcome",
    "CorrelationResult",
    "build_record_match_request",
    "correlate_response",
    "create_record_match_job",
    "get_best_links",
    "get_links",
    "get_worst_links",
    "update_job_metrics",
]
