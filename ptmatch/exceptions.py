"""Custom exceptions for the ptmatch service."""


class PtmatchError(Exception):
    """Base exception for ptmatch errors."""

    pass


class ValidationError(PtmatchError):
    """Invalid configuration content or matching-mode/record-set combination."""

    pass


class DependencyLoadError(PtmatchError):
    """A referenced configuration resource could not be loaded from the store."""

    pass


class ResourceNotFoundError(PtmatchError):
    """No resource with the requested identifier exists in the store."""

    def __init__(self, kind: str, resource_id: str):
        super().__init__(f"{kind} {resource_id} not found")
        self.kind = kind
        self.resource_id = resource_id


class StoreError(PtmatchError):
    """Error during resource store operations."""

    pass


class DispatchError(PtmatchError):
    """The record matching system could not be reached."""

    pass


class CorrelationError(PtmatchError):
    """A response message does not correspond to any record match job."""

    def __init__(self, request_id: str):
        super().__init__(
            f"No record match job found for response to request {request_id}"
        )
        self.request_id = request_id
