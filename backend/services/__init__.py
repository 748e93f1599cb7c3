"""
Property Document Tracker - Services

Stage gating for property transaction documents.

Components:
- document_catalog.py: Document types, groups and stage ranges per workflow variant
- workflow_classifier.py: Picks the workflow variant for a property
- completion.py: Per document type completion from uploads and N/A status
- stage_gate.py: Stages, sub-stages and the lock rule
- progress.py: Required-stage progress and the current stage
- financial_gate.py: Financial overlay per stage (informational)
- document_store.py: MongoDB reads and status upserts
- status_writer.py: Immediate N/A writes and debounced note writes
- document_tracker.py: Load, compute and cache the stage view

Usage:
    from services import DocumentStore, DocumentTracker, StatusWriteService

    store = DocumentStore(db)
    writer = StatusWriteService(store)
    view = await DocumentTracker(store, writer).build_view(property_id, record)
"""

from .document_catalog import WorkflowVariant, DocumentTypeDefinition, get_catalog
from .workflow_classifier import WorkflowClassifier, WorkflowSelection
from .stage_gate import StageDescriptor, SubStageState, compute_stages
from .progress import ProgressSummary, compute_progress
from .document_store import DocumentStore, UpsertResult
from .status_writer import StatusWriteService, StatusWriteError, AsyncioScheduler
from .document_tracker import DocumentTracker, DocumentLockedError, TrackerUnavailableError

__all__ = [
    'WorkflowVariant',
    'DocumentTypeDefinition',
    'get_catalog',
    'WorkflowClassifier',
    'WorkflowSelection',
    'StageDescriptor',
    'SubStageState',
    'compute_stages',
    'ProgressSummary',
    'compute_progress',
    'DocumentStore',
    'UpsertResult',
    'StatusWriteService',
    'StatusWriteError',
    'AsyncioScheduler',
    'DocumentTracker',
    'DocumentLockedError',
    'TrackerUnavailableError',
]
