"""
Property Document Tracker - Stages Router

Stage progression view and document status writes for one property.
Identifiers and authentication are checked here, before the tracker runs.
"""

from fastapi import APIRouter, HTTPException, Query, Depends
from typing import Optional
from pydantic import BaseModel
from pymongo.errors import PyMongoError
import re
import logging

from services.document_catalog import is_doc_type_allowed
from services.document_tracker import DocumentLockedError, TrackerUnavailableError
from services.status_writer import StatusWriteError
from services.workflow_classifier import WorkflowClassifier
from .auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stages", tags=["stages"])

# Tracker and status writer - set by main app
tracker = None
status_writer = None

def set_dependencies(document_tracker, writer):
    global tracker, status_writer
    tracker = document_tracker
    status_writer = writer


UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE
)


# ==================== MODELS ====================

class StatusUpdate(BaseModel):
    is_not_applicable: bool
    note: Optional[str] = None


class NoteUpdate(BaseModel):
    note: str
    is_not_applicable: Optional[bool] = None


# ==================== HELPERS ====================

def validate_entity_id(entity_id: str) -> str:
    if not UUID_PATTERN.match(entity_id or ""):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid property ID format: {entity_id}. Expected UUID format."
        )
    return entity_id


def record_from_query(
    subdivision_status: Optional[str],
    handover_status: Optional[str],
    property_source: Optional[str]
) -> dict:
    return {
        "subdivision_status": subdivision_status,
        "handover_status": handover_status,
        "property_source": property_source,
    }


# ==================== CATALOG ====================

@router.get("/catalog/{variant}")
async def get_catalog(variant: str):
    """Document types and stage numbering for a workflow variant."""
    selection = WorkflowClassifier.select(pipeline=variant)
    return selection.to_dict()


# ==================== STAGE VIEW ====================

@router.get("/{entity_id}")
async def get_stages(
    entity_id: str,
    pipeline: Optional[str] = Query(None),
    subdivision_status: Optional[str] = Query(None),
    handover_status: Optional[str] = Query(None),
    property_source: Optional[str] = Query(None)
):
    """Stages, sub-stages, progress and financial overlay for a property."""
    validate_entity_id(entity_id)
    record = record_from_query(subdivision_status, handover_status, property_source)

    try:
        return await tracker.build_view(entity_id, record=record, pipeline=pipeline)
    except TrackerUnavailableError:
        raise HTTPException(status_code=502, detail="Failed to load documents. Please try again.")


# ==================== STATUS WRITES ====================

@router.put("/{entity_id}/status/{doc_type}")
async def update_status(
    entity_id: str,
    doc_type: str,
    update: StatusUpdate,
    pipeline: Optional[str] = Query(None),
    subdivision_status: Optional[str] = Query(None),
    handover_status: Optional[str] = Query(None),
    property_source: Optional[str] = Query(None),
    user: dict = Depends(get_current_user)
):
    """Toggle not-applicable for a document type. Written immediately."""
    validate_entity_id(entity_id)
    record = record_from_query(subdivision_status, handover_status, property_source)
    selection = WorkflowClassifier.select(record, pipeline)

    if not is_doc_type_allowed(doc_type, selection.variant):
        raise HTTPException(status_code=404, detail=f"Document type {doc_type} not found for {selection.pipeline}")

    try:
        await tracker.ensure_unlocked(entity_id, selection, doc_type)
        await status_writer.set_not_applicable(
            entity_id, selection.pipeline, doc_type, update.is_not_applicable, update.note
        )
    except DocumentLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StatusWriteError as e:
        raise HTTPException(status_code=502, detail=e.message)
    except PyMongoError as e:
        logger.error("Status update failed for %s/%s: %s", entity_id, doc_type, str(e))
        raise HTTPException(status_code=502, detail="Failed to update document status. Please try again.")

    logger.info("User %s set %s is_na=%s on %s", user.get("username"), doc_type, update.is_not_applicable, entity_id)
    return await get_stages(entity_id, pipeline, subdivision_status, handover_status, property_source)


@router.patch("/{entity_id}/note/{doc_type}", status_code=202)
async def update_note(
    entity_id: str,
    doc_type: str,
    update: NoteUpdate,
    pipeline: Optional[str] = Query(None),
    subdivision_status: Optional[str] = Query(None),
    handover_status: Optional[str] = Query(None),
    property_source: Optional[str] = Query(None),
    user: dict = Depends(get_current_user)
):
    """Edit the note of a document type. The write is debounced per document type."""
    validate_entity_id(entity_id)
    record = record_from_query(subdivision_status, handover_status, property_source)
    selection = WorkflowClassifier.select(record, pipeline)

    if not is_doc_type_allowed(doc_type, selection.variant):
        raise HTTPException(status_code=404, detail=f"Document type {doc_type} not found for {selection.pipeline}")

    try:
        await tracker.ensure_unlocked(entity_id, selection, doc_type)
    except DocumentLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PyMongoError as e:
        logger.error("Lock check failed for %s/%s: %s", entity_id, doc_type, str(e))
        raise HTTPException(status_code=502, detail="Failed to update document note. Please try again.")

    status_writer.update_note(
        entity_id, selection.pipeline, doc_type, update.note, update.is_not_applicable
    )

    return {
        "scheduled": True,
        "doc_type": doc_type,
        "debounce_seconds": status_writer.note_debounce_seconds,
    }
