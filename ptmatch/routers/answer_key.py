"""Answer key upload endpoint."""

import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import ValidationError as PydanticValidationError

from ptmatch.exceptions import ResourceNotFoundError, ValidationError
from ptmatch.matching.answer_key import set_answer_key
from ptmatch.models.fhir import Bundle
from ptmatch.models.resources import RecordSet
from ptmatch.routers.deps import StoreDep, get_resource_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["AnswerKey"])


@router.post("/AnswerKey", response_model=RecordSet, response_model_exclude_none=True)
async def upload_answer_key(
    record_set_id: Annotated[str, Form(alias="recordSetId")],
    answer_key: Annotated[UploadFile, File(alias="answerKey")],
    store: StoreDep,
) -> RecordSet:
    """
    Attach an answer key to a record set.

    The answer key is a FHIR document Bundle, uploaded as a multipart file.
    """
    record_set_id = get_resource_id(record_set_id)

    content = await answer_key.read()
    try:
        bundle = Bundle.model_validate_json(content)
    except PydanticValidationError as e:
        logger.warning("Unreadable answer key for record set %s: %s", record_set_id, e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Answer key is not a FHIR Bundle",
        ) from e

    try:
        return await set_answer_key(store, record_set_id, bundle)

    except ResourceNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e

    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
