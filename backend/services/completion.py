"""
Property Document Tracker - Completion Evaluator

A document type is completed when it has at least one stored file OR its
status record marks it not-applicable. The two signals substitute for each
other; they never add up.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List, Any, Iterable, Sequence
import logging

from .document_catalog import DocumentTypeDefinition

logger = logging.getLogger(__name__)


# =============================================================================
# RECORDS
# =============================================================================

@dataclass
class DocumentRecord:
    """One stored file for a document type."""
    id: str
    doc_type_key: str
    uploaded_at: Optional[str] = None
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentRecord":
        return cls(
            id=str(data.get("id", "")),
            doc_type_key=data.get("doc_type") or data.get("doc_type_key", ""),
            uploaded_at=data.get("uploaded_at"),
            file_name=data.get("file_name"),
            file_path=data.get("file_path"),
            file_size=data.get("file_size"),
            mime_type=data.get("mime_type"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "doc_type": self.doc_type_key,
            "uploaded_at": self.uploaded_at,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
        }


@dataclass
class DocumentStatusRecord:
    """Per-document-type status. At most one per (entity, pipeline, doc type)."""
    doc_type_key: str
    is_not_applicable: bool = False
    note: str = ""
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentStatusRecord":
        return cls(
            doc_type_key=data.get("doc_type") or data.get("doc_type_key", ""),
            is_not_applicable=bool(data.get("is_na", data.get("is_not_applicable", False))),
            note=data.get("note") or "",
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "doc_type": self.doc_type_key,
            "is_na": self.is_not_applicable,
            "note": self.note,
            "updated_at": self.updated_at,
        }


@dataclass
class DocumentTypeState:
    """Everything known about one document type for one entity."""
    documents: List[DocumentRecord] = field(default_factory=list)
    status: Optional[DocumentStatusRecord] = None

    @property
    def is_completed(self) -> bool:
        return is_doc_type_completed(self.documents, self.status)


# =============================================================================
# EVALUATION
# =============================================================================

def is_doc_type_completed(
    documents: Optional[Sequence[DocumentRecord]],
    status: Optional[DocumentStatusRecord]
) -> bool:
    """A status with is_not_applicable=False does not by itself grant completion."""
    has_files = bool(documents)
    is_na = bool(status and status.is_not_applicable)
    return has_files or is_na


def group_document_states(
    catalog: Sequence[DocumentTypeDefinition],
    documents: Iterable[DocumentRecord],
    statuses: Iterable[DocumentStatusRecord]
) -> Dict[str, DocumentTypeState]:
    """
    Bucket flat record lists by document type. Records whose type is not in
    the catalog are skipped.
    """
    states: Dict[str, DocumentTypeState] = {d.key: DocumentTypeState() for d in catalog}

    for doc in documents:
        state = states.get(doc.doc_type_key)
        if state is None:
            logger.debug("Skipping document %s with unknown doc type %s", doc.id, doc.doc_type_key)
            continue
        state.documents.append(doc)

    for status in statuses:
        state = states.get(status.doc_type_key)
        if state is None:
            logger.debug("Skipping status for unknown doc type %s", status.doc_type_key)
            continue
        state.status = status

    return states


def build_completion_map(
    catalog: Sequence[DocumentTypeDefinition],
    documents: Iterable[DocumentRecord] = (),
    statuses: Iterable[DocumentStatusRecord] = ()
) -> Dict[str, bool]:
    """Completion boolean for every document type in the catalog."""
    states = group_document_states(catalog, documents, statuses)
    return {key: state.is_completed for key, state in states.items()}


def get_status_badge(
    definition: DocumentTypeDefinition,
    state: Optional[DocumentTypeState]
) -> Dict[str, str]:
    """Short badge text for a document type: N/A, file count, Required or Optional."""
    if state and state.status and state.status.is_not_applicable:
        return {"text": "N/A", "kind": "not_applicable"}

    count = len(state.documents) if state else 0
    if count > 0:
        return {"text": f"{count} file{'s' if count != 1 else ''}", "kind": "complete"}

    if definition.required:
        return {"text": "Required", "kind": "required"}
    return {"text": "Optional", "kind": "optional"}
