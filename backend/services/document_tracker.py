"""
Property Document Tracker - Tracker Service

Loads a property's stored documents and statuses, then runs the pure
pipeline: classify -> completion map -> stages -> progress, with the
financial overlay attached for display.

The last successfully computed view per (property, pipeline) is kept so that
a failed reload can fall back to it instead of exposing partial state.
"""

from typing import Optional, Dict, Any, Tuple
import logging

from pymongo.errors import PyMongoError

from .completion import group_document_states, get_status_badge, DocumentTypeState
from .document_catalog import get_definition
from .document_store import DocumentStore
from .financial_gate import StaticFinancialGate, attach_financial_overlay
from .progress import compute_progress, calculate_workflow_progress
from .stage_gate import compute_stages, find_stage_for_doc_type
from .status_writer import StatusWriteService
from .workflow_classifier import WorkflowClassifier, WorkflowSelection

logger = logging.getLogger(__name__)


class DocumentLockedError(Exception):
    """A write targeted a document whose stage is still locked."""

    def __init__(self, doc_type_key: str, stage_number: int, label: Optional[str] = None):
        super().__init__(f"Please complete the previous steps before modifying {label or doc_type_key}.")
        self.doc_type_key = doc_type_key
        self.stage_number = stage_number


class TrackerUnavailableError(Exception):
    """Stored state could not be loaded and no earlier view exists."""


class DocumentTracker:

    def __init__(self, store: DocumentStore, writer: Optional[StatusWriteService] = None):
        self.store = store
        self.writer = writer
        self._last_views: Dict[Tuple[str, str], Dict[str, Any]] = {}

    async def load_states(self, entity_id: str, selection: WorkflowSelection) -> Dict[str, DocumentTypeState]:
        """Stored records grouped per catalog entry, with unconfirmed local statuses on top."""
        documents = await self.store.list_documents(entity_id, selection.pipeline)
        statuses = await self.store.list_statuses(entity_id, selection.pipeline)
        states = group_document_states(selection.catalog, documents, statuses)

        if self.writer:
            for key, state in states.items():
                local = self.writer.get_local_status(entity_id, selection.pipeline, key, state.status)
                if local is not None:
                    state.status = local

        return states

    async def build_view(
        self,
        entity_id: str,
        record: Optional[Dict[str, Any]] = None,
        pipeline: Optional[str] = None
    ) -> Dict[str, Any]:
        selection = WorkflowClassifier.select(record, pipeline)
        cache_key = (entity_id, selection.pipeline)

        try:
            states = await self.load_states(entity_id, selection)
            financial_records = await self.store.list_financial_statuses(entity_id, selection.pipeline)
        except PyMongoError as e:
            logger.error("Failed to load documents for %s (%s): %s", entity_id, selection.pipeline, str(e))
            cached = self._last_views.get(cache_key)
            if cached is None:
                raise TrackerUnavailableError("Failed to load documents") from e
            return {**cached, "stale": True}

        completion_map = {key: state.is_completed for key, state in states.items()}
        stages = compute_stages(selection.catalog, completion_map)
        progress = compute_progress(stages)
        financial_gate = StaticFinancialGate.from_records(financial_records)

        view = {
            "entity_id": entity_id,
            "workflow": {
                "variant": selection.variant.value,
                "label": selection.label,
                "display_offset": selection.display_offset,
            },
            "stages": attach_financial_overlay(stages, financial_gate, selection.display_offset),
            "progress": progress.to_dict(),
            "document_progress": calculate_workflow_progress(completion_map, selection.variant),
            "documents": {
                d.key: {
                    "label": d.label,
                    "required": d.required,
                    "is_completed": completion_map[d.key],
                    "badge": get_status_badge(d, states[d.key]),
                    "file_count": len(states[d.key].documents),
                    "note": states[d.key].status.note if states[d.key].status else "",
                }
                for d in selection.catalog
            },
            "stale": False,
        }
        self._last_views[cache_key] = view
        return view

    async def ensure_unlocked(self, entity_id: str, selection: WorkflowSelection, doc_type_key: str) -> None:
        """Raise DocumentLockedError when the document's stage is locked."""
        states = await self.load_states(entity_id, selection)
        completion_map = {key: state.is_completed for key, state in states.items()}
        stages = compute_stages(selection.catalog, completion_map)

        stage = find_stage_for_doc_type(stages, doc_type_key)
        if stage and stage.is_locked:
            definition = get_definition(doc_type_key)
            logger.info("Rejected write to locked document %s (stage %d)", doc_type_key, stage.stage_number)
            raise DocumentLockedError(doc_type_key, stage.stage_number, definition.label if definition else None)
