"""
Property Document Tracker - Stage Gate Evaluator

Folds an ordered document-type catalog into a sequence of stages and derives
lock / active / completed status for each one.

Rules:
- A stage is completed when its document type is completed; a grouped
  (multi-document) stage is completed only when every member is.
- A stage is locked when any earlier stage is incomplete.
- A stage is active when every earlier stage is completed and it is not.
- Inside a grouped stage the members form sub-stages with the same rules,
  scoped to the group's own order. Sub-stage locks ignore the outer stage's
  lock so partial progress inside an active group is possible.
- A group is emitted once, at the position of its first member, even when
  its members are not contiguous in the catalog.
- Entries without a key are skipped; other missing attributes take defaults
  (required, label = key, no description, no group).

The fold carries a single running "all prior complete" flag, so the whole
computation is one left-to-right pass. It is a pure function of the catalog
order and the completion booleans: no hidden state, same input -> same output.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List, Any, Sequence, Set
import logging

from .document_catalog import (
    DocumentTypeDefinition, get_group_label, GROUP_DESCRIPTIONS
)

logger = logging.getLogger(__name__)


# =============================================================================
# STAGE DESCRIPTORS
# =============================================================================

@dataclass(frozen=True)
class SubStageState:
    """A document type's position inside a grouped stage (1-based)."""
    position: int
    doc_type_key: str
    is_completed: bool
    is_locked: bool
    is_active: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "doc_type_key": self.doc_type_key,
            "is_completed": self.is_completed,
            "is_locked": self.is_locked,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class StageDescriptor:
    """One derived step of the completion sequence. Never persisted."""
    stage_number: int
    doc_type_keys: tuple
    is_multi_document: bool
    is_active: bool
    is_completed: bool
    is_locked: bool
    required: bool
    label: str
    description: str = ""
    group_key: Optional[str] = None
    sub_stages: tuple = field(default_factory=tuple)

    @property
    def completed_members(self) -> int:
        if not self.is_multi_document:
            return 1 if self.is_completed else 0
        return sum(1 for s in self.sub_stages if s.is_completed)

    @property
    def total_members(self) -> int:
        return len(self.doc_type_keys)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "stage_number": self.stage_number,
            "doc_type_keys": list(self.doc_type_keys),
            "is_multi_document": self.is_multi_document,
            "is_active": self.is_active,
            "is_completed": self.is_completed,
            "is_locked": self.is_locked,
            "required": self.required,
            "label": self.label,
            "description": self.description,
        }
        if self.is_multi_document:
            data["group_key"] = self.group_key
            data["sub_stages"] = [s.to_dict() for s in self.sub_stages]
            data["completed_members"] = self.completed_members
            data["total_members"] = self.total_members
        return data


# =============================================================================
# GATING
# =============================================================================

def compute_sub_stages(
    members: Sequence[DocumentTypeDefinition],
    completion_map: Dict[str, bool]
) -> List[SubStageState]:
    """Sequential gating scoped to a group's member order."""
    sub_stages = []
    all_prior_complete = True

    for position, member in enumerate(members, start=1):
        completed = bool(completion_map.get(member.key, False))
        sub_stages.append(SubStageState(
            position=position,
            doc_type_key=member.key,
            is_completed=completed,
            is_locked=not all_prior_complete,
            is_active=all_prior_complete and not completed,
        ))
        all_prior_complete = all_prior_complete and completed

    return sub_stages


def _group_members(
    catalog: Sequence[DocumentTypeDefinition],
    group_key: str,
    seen_keys: Set[str]
) -> List[DocumentTypeDefinition]:
    """Members of a group in catalog order, wherever they sit in the catalog; first occurrence of a key wins."""
    members = []
    keys: Set[str] = set()
    for entry in catalog:
        key = getattr(entry, "key", None)
        if not key or key in keys or key in seen_keys:
            continue
        if getattr(entry, "group_key", None) == group_key:
            members.append(entry)
            keys.add(key)
    return members


def compute_stages(
    catalog: Sequence[DocumentTypeDefinition],
    completion_map: Optional[Dict[str, bool]]
) -> List[StageDescriptor]:
    """
    Derive the ordered stage list.

    Args:
        catalog: Ordered document-type definitions for one workflow variant
        completion_map: doc type key -> completed; missing keys count as incomplete

    Returns:
        StageDescriptor list with contiguous 1-based stage numbers
    """
    completion_map = completion_map or {}
    stages: List[StageDescriptor] = []
    emitted_groups: Set[str] = set()
    seen_keys: Set[str] = set()
    all_prior_complete = True

    for definition in catalog:
        key = getattr(definition, "key", None)
        if not key or key in seen_keys:
            logger.debug("Skipping catalog entry without key or duplicated: %r", definition)
            continue

        group_key = getattr(definition, "group_key", None)
        if group_key:
            if group_key in emitted_groups:
                continue
            emitted_groups.add(group_key)

            members = _group_members(catalog, group_key, seen_keys)
            seen_keys.update(m.key for m in members)
            sub_stages = compute_sub_stages(members, completion_map)
            completed = all(s.is_completed for s in sub_stages)

            stages.append(StageDescriptor(
                stage_number=len(stages) + 1,
                doc_type_keys=tuple(m.key for m in members),
                is_multi_document=True,
                is_active=all_prior_complete and not completed,
                is_completed=completed,
                is_locked=not all_prior_complete,
                required=any(getattr(m, "required", True) for m in members),
                label=get_group_label(group_key),
                description=GROUP_DESCRIPTIONS.get(group_key, ""),
                group_key=group_key,
                sub_stages=tuple(sub_stages),
            ))
        else:
            seen_keys.add(key)
            completed = bool(completion_map.get(key, False))

            stages.append(StageDescriptor(
                stage_number=len(stages) + 1,
                doc_type_keys=(key,),
                is_multi_document=False,
                is_active=all_prior_complete and not completed,
                is_completed=completed,
                is_locked=not all_prior_complete,
                required=getattr(definition, "required", True),
                label=getattr(definition, "label", key),
                description=getattr(definition, "description", ""),
            ))

        all_prior_complete = all_prior_complete and completed

    return stages


def find_stage_for_doc_type(
    stages: Sequence[StageDescriptor],
    doc_type_key: str
) -> Optional[StageDescriptor]:
    """The stage that owns a document type (singleton or group member)."""
    for stage in stages:
        if doc_type_key in stage.doc_type_keys:
            return stage
    return None


def get_next_required_sub_stage(stage: StageDescriptor) -> Optional[str]:
    """First incomplete member of a grouped stage, or None when the group is done."""
    for sub_stage in stage.sub_stages:
        if not sub_stage.is_completed:
            return sub_stage.doc_type_key
    return None


def is_doc_type_locked(stages: Sequence[StageDescriptor], doc_type_key: str) -> bool:
    """A document is locked when its owning stage is. Unknown types are not locked."""
    stage = find_stage_for_doc_type(stages, doc_type_key)
    return stage.is_locked if stage else False
