"""
Property Document Tracker - Financial Gate Overlay

Payment requirements per stage come from an external component. They are
shown next to a stage for information only and never change its
lock / active / completed status; document completion and payment completion
are independent.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any, Callable, Sequence, List
import logging

from .stage_gate import StageDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinancialStatus:
    is_complete: bool
    pending_amount: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FinancialStatus":
        return cls(
            is_complete=bool(data.get("is_complete", False)),
            pending_amount=float(data.get("pending_amount") or 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"is_complete": self.is_complete, "pending_amount": self.pending_amount}


# stage number -> status, or None when the stage has no payment requirement
FinancialGate = Callable[[int], Optional[FinancialStatus]]


def no_financial_requirements(stage_number: int) -> Optional[FinancialStatus]:
    return None


class StaticFinancialGate:
    """Financial gate backed by a preloaded {stage_number: status} mapping."""

    def __init__(self, statuses: Optional[Dict[int, FinancialStatus]] = None):
        self.statuses = dict(statuses or {})

    @classmethod
    def from_records(cls, records: Sequence[Dict[str, Any]]) -> "StaticFinancialGate":
        statuses = {}
        for record in records:
            stage_number = record.get("stage_number")
            if stage_number is None:
                continue
            statuses[int(stage_number)] = FinancialStatus.from_dict(record)
        return cls(statuses)

    def __call__(self, stage_number: int) -> Optional[FinancialStatus]:
        return self.statuses.get(stage_number)


def attach_financial_overlay(
    stages: Sequence[StageDescriptor],
    financial_gate: Optional[FinancialGate],
    display_offset: int = 0
) -> List[Dict[str, Any]]:
    """
    Serialize stages with a `financial` entry per stage. The gate is queried by
    actual stage number (display number + offset). A failing gate leaves the
    overlay empty for that stage; stage status is untouched either way.
    """
    gate = financial_gate or no_financial_requirements
    overlaid = []

    for stage in stages:
        data = stage.to_dict()
        actual_stage_number = stage.stage_number + display_offset
        data["actual_stage_number"] = actual_stage_number

        try:
            status = gate(actual_stage_number)
        except Exception as e:
            logger.warning("Financial gate lookup failed for stage %d: %s", actual_stage_number, e)
            status = None

        data["financial"] = status.to_dict() if status else None
        overlaid.append(data)

    return overlaid
