"""
Property Document Tracker - Workflow Classifier

Maps a transaction record (and/or an explicit pipeline tag) to exactly one
workflow variant and the catalog that applies to it.

Classification is total: every record maps to one variant, and an unknown or
missing pipeline tag falls back instead of raising.

Record priority: subdivision_status > handover_status > property_source.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple
import logging

from .document_catalog import (
    WorkflowVariant, DocumentTypeDefinition, WORKFLOW_LABELS,
    get_catalog, get_display_offset, get_stage_range
)
from .tracker_config import DEFAULT_PIPELINE

logger = logging.getLogger(__name__)


NOT_STARTED = "NOT_STARTED"
PURCHASE_PIPELINE_SOURCE = "PURCHASE_PIPELINE"

# Alternate spellings seen on pipeline tags
PIPELINE_TAG_ALIASES: Dict[str, WorkflowVariant] = {
    "direct": WorkflowVariant.DIRECT_ADDITION,
    "purchase": WorkflowVariant.PURCHASE_PIPELINE,
    "purchase_pipeline": WorkflowVariant.PURCHASE_PIPELINE,
    "subdivide": WorkflowVariant.SUBDIVISION,
    "sub_division": WorkflowVariant.SUBDIVISION,
    "stages_11_16": WorkflowVariant.SUBDIVISION,
    "stages_1_10": WorkflowVariant.DIRECT_ADDITION,
}


@dataclass(frozen=True)
class WorkflowSelection:
    """A classified variant with its discriminated payload (catalog + numbering)."""
    variant: WorkflowVariant
    catalog: Tuple[DocumentTypeDefinition, ...]
    display_offset: int
    label: str

    @property
    def pipeline(self) -> str:
        return self.variant.value

    def to_dict(self) -> Dict[str, Any]:
        low, high = get_stage_range(self.variant)
        return {
            "variant": self.variant.value,
            "label": self.label,
            "display_offset": self.display_offset,
            "stage_range": {"min": low, "max": high},
            "display_range": {"min": low - self.display_offset, "max": high - self.display_offset},
            "doc_types": [d.to_dict() for d in self.catalog],
        }


def _is_started(value: Optional[str]) -> bool:
    return bool(value) and value != NOT_STARTED


class WorkflowClassifier:
    """
    Deterministic rules for picking the workflow variant of a transaction.
    All methods are side-effect free.
    """

    @staticmethod
    def classify_pipeline_tag(tag: Optional[str]) -> Optional[WorkflowVariant]:
        """Resolve an explicit pipeline tag. Returns None when the tag is absent or unknown."""
        if not tag:
            return None
        normalized = str(tag).strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return WorkflowVariant(normalized)
        except ValueError:
            pass
        return PIPELINE_TAG_ALIASES.get(normalized)

    @staticmethod
    def classify_record(record: Optional[Dict[str, Any]]) -> WorkflowVariant:
        """Classify from transaction attributes."""
        record = record or {}

        if _is_started(record.get("subdivision_status")):
            return WorkflowVariant.SUBDIVISION

        if _is_started(record.get("handover_status")):
            return WorkflowVariant.HANDOVER

        if str(record.get("property_source") or "").upper() == PURCHASE_PIPELINE_SOURCE:
            return WorkflowVariant.PURCHASE_PIPELINE

        return WorkflowClassifier.classify_pipeline_tag(DEFAULT_PIPELINE) or WorkflowVariant.DIRECT_ADDITION

    @staticmethod
    def classify(
        record: Optional[Dict[str, Any]] = None,
        pipeline: Optional[str] = None
    ) -> WorkflowVariant:
        """
        Pick the variant. A recognized pipeline tag wins; otherwise the record
        attributes decide, and DEFAULT_PIPELINE is the final fallback.
        """
        variant = WorkflowClassifier.classify_pipeline_tag(pipeline)
        if variant is not None:
            return variant

        if pipeline:
            logger.debug("Unrecognized pipeline tag %r, classifying from record", pipeline)

        return WorkflowClassifier.classify_record(record)

    @staticmethod
    def select(
        record: Optional[Dict[str, Any]] = None,
        pipeline: Optional[str] = None
    ) -> WorkflowSelection:
        """Classify and attach the variant's catalog and display numbering."""
        variant = WorkflowClassifier.classify(record, pipeline)
        return WorkflowSelection(
            variant=variant,
            catalog=get_catalog(variant),
            display_offset=get_display_offset(variant),
            label=WORKFLOW_LABELS[variant.value],
        )

    @staticmethod
    def get_pipeline_name(variant) -> str:
        """Pipeline name used on stored document and status records."""
        if isinstance(variant, WorkflowVariant):
            return variant.value
        resolved = WorkflowClassifier.classify_pipeline_tag(variant)
        return (resolved or WorkflowVariant.DIRECT_ADDITION).value

    @staticmethod
    def get_status_for_filter(record: Optional[Dict[str, Any]]) -> str:
        """Coarse lifecycle bucket for list filtering: active, completed or pending."""
        record = record or {}
        subdivision_status = record.get("subdivision_status")
        handover_status = record.get("handover_status")

        if subdivision_status == "SUB_DIVISION_STARTED" or handover_status == "IN_PROGRESS":
            return "active"
        if subdivision_status == "SUBDIVIDED" or handover_status == "COMPLETED":
            return "completed"
        if record.get("lifecycle_status") == "PENDING_PURCHASE":
            return "pending"
        return "active"
