"""
Property Document Tracker - Progress Aggregator

Reduces a stage sequence to a completion percentage and the stage the user
should work on next.
"""

from dataclasses import dataclass
from typing import Dict, Any, Sequence

from .document_catalog import get_catalog
from .stage_gate import StageDescriptor


def round_percentage(completed: int, total: int) -> int:
    """Half-up rounding of completed/total*100. Zero total gives 0."""
    if total <= 0:
        return 0
    return (completed * 200 + total) // (2 * total)


@dataclass(frozen=True)
class ProgressSummary:
    completed_count: int
    total_count: int
    percentage: int
    current_active_stage_number: int

    @property
    def is_complete(self) -> bool:
        return self.total_count > 0 and self.completed_count == self.total_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed_count": self.completed_count,
            "total_count": self.total_count,
            "percentage": self.percentage,
            "current_active_stage_number": self.current_active_stage_number,
        }


def compute_progress(stages: Sequence[StageDescriptor]) -> ProgressSummary:
    """
    Only required stages count; optional stages never enter the denominator.
    The current stage is the first active one, or the last stage when none is
    active (everything done, or nothing reachable).
    """
    required = [s for s in stages if s.required]
    completed = sum(1 for s in required if s.is_completed)

    current = 0
    for stage in stages:
        if stage.is_active:
            current = stage.stage_number
            break
    else:
        if stages:
            current = stages[-1].stage_number

    return ProgressSummary(
        completed_count=completed,
        total_count=len(required),
        percentage=round_percentage(completed, len(required)),
        current_active_stage_number=current,
    )


def calculate_workflow_progress(completion_map: Dict[str, bool], variant) -> Dict[str, int]:
    """
    Document-level statistic over every catalog entry of the variant, required
    and optional alike, since optional documents can be marked N/A.
    """
    catalog = get_catalog(variant)
    completed = sum(1 for d in catalog if completion_map.get(d.key))
    return {
        "completed": completed,
        "total": len(catalog),
        "percentage": round_percentage(completed, len(catalog)),
    }
