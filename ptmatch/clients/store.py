"""Dependency injection provider for the resource store."""

import os

from ptmatch.services.store_service import MongoResourceStore, create_resource_store

_resource_store: MongoResourceStore | None = None


def get_resource_store() -> MongoResourceStore:
    """Get or create the MongoResourceStore singleton."""
    global _resource_store
    if _resource_store is None:
        # In tests, we'll override this dependency
        if os.getenv("PYTEST_CURRENT_TEST"):
            raise RuntimeError(
                "ResourceStore should be replaced in tests via dependency override"
            )
        _resource_store = create_resource_store()
    return _resource_store


def close_resource_store() -> None:
    """Close the singleton's database client, if one was created."""
    global _resource_store
    if _resource_store is not None:
        _resource_store.close()
        _resource_store = None
