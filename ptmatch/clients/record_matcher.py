"""Dependency injection provider for the record matcher HTTP client."""

from ptmatch.services.record_matcher_service import RecordMatcherService

_record_matcher_service: RecordMatcherService | None = None


def get_record_matcher_service() -> RecordMatcherService:
    """Get or create the RecordMatcherService singleton."""
    global _record_matcher_service
    if _record_matcher_service is None:
        _record_matcher_service = RecordMatcherService()
    return _record_matcher_service


async def close_record_matcher_service() -> None:
    """Close the singleton's HTTP client, if one was created."""
    global _record_matcher_service
    if _record_matcher_service is not None:
        await _record_matcher_service.close()
        _record_matcher_service = None
