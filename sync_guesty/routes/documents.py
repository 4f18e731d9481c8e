from typing import Any

import structlog
from fastapi import APIRouter, Depends, Path
from sqlalchemy.engine import Engine

from sync_guesty.dependencies import get_db_engine
from sync_guesty.schemas.documents import DocumentNumberPayload, SequenceUpdatePayload
from sync_guesty.services.documents import get_sequence_info, number_for, set_sequence

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/number")
def issue_document_number(
    payload: DocumentNumberPayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    """
    Return the quote or invoice number of a reservation, issuing one if needed.

    Returns:
        dict: reservation_id, kind and document_number
    """
    number = number_for(engine, payload.reservation_id, payload.kind, year=payload.year)
    return {
        "reservation_id": payload.reservation_id,
        "kind": payload.kind,
        "document_number": number,
    }


@router.get("/sequence/{year}")
def read_sequence(
    year: int = Path(..., ge=2000, le=9999),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    return get_sequence_info(engine, year)


@router.put("/sequence/{year}")
def update_sequence(
    payload: SequenceUpdatePayload,
    year: int = Path(..., ge=2000, le=9999),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Manually correct the shared sequence (e.g. after importing old invoices).

    Returns:
        dict: The sequence state after the update
    """
    set_sequence(engine, year, payload.value)
    logger.info("document_sequence_updated", year=year, value=payload.value)
    return get_sequence_info(engine, year)
