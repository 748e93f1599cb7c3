"""
Unit tests for the financial overlay.
Tests services/financial_gate.py
"""
import pytest

from services.document_catalog import DocumentTypeDefinition
from services.financial_gate import (
    FinancialStatus,
    StaticFinancialGate,
    attach_financial_overlay,
)
from services.stage_gate import compute_stages


def singleton_catalog(n):
    return [
        DocumentTypeDefinition(key=f"t{i}", label=f"T{i}", required=True, order_index=i)
        for i in range(1, n + 1)
    ]


class TestStaticGate:
    """Test the preloaded gate."""

    def test_from_records(self):
        """Records without a stage number are ignored."""
        gate = StaticFinancialGate.from_records([
            {"stage_number": 2, "is_complete": False, "pending_amount": 1500},
            {"is_complete": True},
        ])
        assert gate(2) == FinancialStatus(is_complete=False, pending_amount=1500.0)
        assert gate(1) is None


class TestOverlay:
    """Test attaching financial status to serialized stages."""

    def test_overlay_does_not_change_status(self):
        """An unpaid stage keeps its document-derived status."""
        stages = compute_stages(singleton_catalog(2), {"t1": True})
        gate = StaticFinancialGate({1: FinancialStatus(is_complete=False, pending_amount=200.0)})

        overlaid = attach_financial_overlay(stages, gate)

        assert overlaid[0]["is_completed"] is True
        assert overlaid[0]["financial"] == {"is_complete": False, "pending_amount": 200.0}
        assert overlaid[1]["is_active"] is True
        assert overlaid[1]["financial"] is None

    def test_queried_by_actual_stage_number(self):
        """Subdivision display numbers are shifted back before the lookup."""
        stages = compute_stages(singleton_catalog(2), {})
        gate = StaticFinancialGate({11: FinancialStatus(is_complete=True)})

        overlaid = attach_financial_overlay(stages, gate, display_offset=9)

        assert overlaid[0]["actual_stage_number"] == 10
        assert overlaid[0]["financial"] is None
        assert overlaid[1]["actual_stage_number"] == 11
        assert overlaid[1]["financial"]["is_complete"] is True

    def test_failing_gate(self):
        """A gate that raises leaves the overlay empty."""
        def broken_gate(stage_number):
            raise RuntimeError("finance service down")

        stages = compute_stages(singleton_catalog(2), {})
        overlaid = attach_financial_overlay(stages, broken_gate)
        assert [s["financial"] for s in overlaid] == [None, None]
        assert overlaid[0]["is_active"] is True

    def test_no_gate(self):
        """Without a gate every overlay is empty."""
        overlaid = attach_financial_overlay(compute_stages(singleton_catalog(1), {}), None)
        assert overlaid[0]["financial"] is None
