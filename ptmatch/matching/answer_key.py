"""Association of answer keys with record sets."""

import logging

from ptmatch.exceptions import ValidationError
from ptmatch.models.fhir import Bundle, Composition
from ptmatch.models.resources import RecordSet, ResourceKind
from ptmatch.services.store_service import ResourceStore

logger = logging.getLogger(__name__)


def is_valid_answer_key(bundle: Bundle) -> bool:
    """An answer key is a FHIR document: a document Bundle led by a Composition."""
    return (
        bundle.type == "document"
        and bool(bundle.id)
        and bool(bundle.entry)
        and isinstance(bundle.entry[0].resource, Composition)
    )


async def set_answer_key(
    store: ResourceStore, record_set_id: str, answer_key: Bundle
) -> RecordSet:
    """
    Attach an answer key to a record set, replacing any previous one.

    Raises:
        ResourceNotFoundError: If the record set does not exist
        ValidationError: If the bundle is not a valid answer key
    """
    record_set: RecordSet = await store.load(ResourceKind.RECORD_SET, record_set_id)

    if not is_valid_answer_key(answer_key):
        raise ValidationError("Invalid answer key: expected a document Bundle with a Composition")

    record_set.answer_key = answer_key
    updated, _ = await store.update(ResourceKind.RECORD_SET, record_set_id, record_set)
    logger.info(
        "Answer key %s with %d entries set on record set %s",
        answer_key.id,
        len(answer_key.entry),
        record_set_id,
    )
    return updated
