"""
Tests for immediate N/A writes and debounced note writes.
Tests services/status_writer.py with a mocked store and a manual scheduler.
"""
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from pymongo.errors import PyMongoError

from services.completion import DocumentStatusRecord
from services.document_store import UpsertResult
from services.status_writer import StatusWriteService, StatusWriteError, AsyncioScheduler

PROPERTY_ID = "3f2b8c1e-9a4d-4e6f-8b2a-1c3d5e7f9a0b"
OTHER_PROPERTY_ID = "7c9e6679-7425-40de-944b-e07fc1f90ae7"
PIPELINE = "direct_addition"


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.upsert_status = AsyncMock(return_value=UpsertResult.SUCCESS)
    store.get_status = AsyncMock(return_value=None)
    return store


def blocking_upsert(release: asyncio.Event, result=UpsertResult.SUCCESS):
    """Upsert that waits until the test releases it."""
    async def upsert(*args):
        await release.wait()
        return result
    return upsert


async def let_tasks_run():
    for _ in range(3):
        await asyncio.sleep(0)


class TestNotApplicable:
    """Test immediate N/A toggles."""

    @pytest.mark.asyncio
    async def test_written_immediately(self, mock_store, scheduler):
        """N/A toggles hit the store without scheduling and leave the note alone."""
        writer = StatusWriteService(mock_store, scheduler=scheduler)
        status = await writer.set_not_applicable(PROPERTY_ID, PIPELINE, "assessment", True)

        mock_store.upsert_status.assert_awaited_once_with(PROPERTY_ID, PIPELINE, "assessment", True, None)
        assert scheduler.scheduled == []
        assert status.is_not_applicable is True

    @pytest.mark.asyncio
    async def test_confirmed_write_not_kept_locally(self, mock_store, scheduler):
        """Once the store confirms, reads go back to the store."""
        writer = StatusWriteService(mock_store, scheduler=scheduler)
        await writer.set_not_applicable(PROPERTY_ID, PIPELINE, "assessment", True)

        assert writer.get_local_status(PROPERTY_ID, PIPELINE, "assessment") is None

    @pytest.mark.asyncio
    async def test_failure_drops_local_edit(self, mock_store, scheduler):
        """A failed write leaves no optimistic status behind and raises."""
        mock_store.upsert_status = AsyncMock(return_value=UpsertResult.FAILURE)
        writer = StatusWriteService(mock_store, scheduler=scheduler)

        with pytest.raises(StatusWriteError) as exc_info:
            await writer.set_not_applicable(PROPERTY_ID, PIPELINE, "assessment", True)

        assert "Please try again" in exc_info.value.message
        assert writer.get_local_status(PROPERTY_ID, PIPELINE, "assessment") is None

    @pytest.mark.asyncio
    async def test_conflict_reloads(self, mock_store, scheduler):
        """A duplicate-key conflict is treated as applied and the stored status reloaded."""
        mock_store.upsert_status = AsyncMock(return_value=UpsertResult.CONFLICT)
        stored = DocumentStatusRecord(doc_type_key="assessment", is_not_applicable=True, note="by colleague")
        mock_store.get_status = AsyncMock(return_value=stored)
        writer = StatusWriteService(mock_store, scheduler=scheduler)

        status = await writer.set_not_applicable(PROPERTY_ID, PIPELINE, "assessment", True)

        assert status == stored
        assert mock_store.upsert_status.await_count == 1
        assert writer.get_local_status(PROPERTY_ID, PIPELINE, "assessment") is None

    @pytest.mark.asyncio
    async def test_conflict_reload_failure(self, mock_store, scheduler):
        """A failed reload after a conflict raises and drops the optimistic status."""
        mock_store.upsert_status = AsyncMock(return_value=UpsertResult.CONFLICT)
        mock_store.get_status = AsyncMock(side_effect=PyMongoError("connection reset"))
        writer = StatusWriteService(mock_store, scheduler=scheduler)

        with pytest.raises(StatusWriteError):
            await writer.set_not_applicable(PROPERTY_ID, PIPELINE, "title_copy", True)

        assert writer.get_local_status(PROPERTY_ID, PIPELINE, "title_copy") is None

    @pytest.mark.asyncio
    async def test_cancels_pending_note_and_keeps_text(self, mock_store, scheduler):
        """Toggling N/A supersedes a pending note write and carries its text."""
        writer = StatusWriteService(mock_store, scheduler=scheduler)
        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "draft")

        await writer.set_not_applicable(PROPERTY_ID, PIPELINE, "assessment", True)

        assert scheduler.live() == []
        assert not writer.has_pending(PROPERTY_ID, PIPELINE, "assessment")
        mock_store.upsert_status.assert_awaited_once_with(PROPERTY_ID, PIPELINE, "assessment", True, "draft")


class TestNoteDebounce:
    """Test debounced note writes."""

    @pytest.mark.asyncio
    async def test_note_is_scheduled(self, mock_store, scheduler):
        """A note edit is visible locally before it is written."""
        writer = StatusWriteService(mock_store, scheduler=scheduler, note_debounce_seconds=0.5)
        writer.update_note(PROPERTY_ID, PIPELINE, "valuation_report", "ordered")

        assert scheduler.scheduled[0]["delay"] == 0.5
        assert writer.has_pending(PROPERTY_ID, PIPELINE, "valuation_report")
        assert writer.get_local_status(PROPERTY_ID, PIPELINE, "valuation_report").note == "ordered"
        mock_store.upsert_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_local_note_keeps_stored_na(self, mock_store, scheduler):
        """A pending note is laid over the stored N/A flag without changing it."""
        writer = StatusWriteService(mock_store, scheduler=scheduler)
        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "waived by board")

        stored = DocumentStatusRecord(doc_type_key="assessment", is_not_applicable=True, note="old")
        local = writer.get_local_status(PROPERTY_ID, PIPELINE, "assessment", stored)
        assert local.is_not_applicable is True
        assert local.note == "waived by board"

    @pytest.mark.asyncio
    async def test_latest_edit_wins(self, mock_store, scheduler):
        """Rapid edits of one note produce a single write with the last text."""
        writer = StatusWriteService(mock_store, scheduler=scheduler)
        writer.update_note(PROPERTY_ID, PIPELINE, "valuation_report", "o")
        writer.update_note(PROPERTY_ID, PIPELINE, "valuation_report", "or")
        writer.update_note(PROPERTY_ID, PIPELINE, "valuation_report", "ordered")

        assert await scheduler.run_all() == 1
        mock_store.upsert_status.assert_awaited_once_with(
            PROPERTY_ID, PIPELINE, "valuation_report", None, "ordered"
        )
        assert not writer.has_pending(PROPERTY_ID, PIPELINE, "valuation_report")

    @pytest.mark.asyncio
    async def test_keys_debounce_independently(self, mock_store, scheduler):
        """Edits to different document types do not cancel each other."""
        writer = StatusWriteService(mock_store, scheduler=scheduler)
        writer.update_note(PROPERTY_ID, PIPELINE, "valuation_report", "a")
        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "b")

        assert await scheduler.run_all() == 2
        assert mock_store.upsert_status.await_count == 2

    @pytest.mark.asyncio
    async def test_note_does_not_touch_na_flag(self, mock_store, scheduler):
        """A note-only write leaves the stored N/A flag unchanged."""
        writer = StatusWriteService(mock_store, scheduler=scheduler)
        await writer.set_not_applicable(PROPERTY_ID, PIPELINE, "assessment", True)
        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "not needed for leasehold")

        await scheduler.run_all()
        mock_store.upsert_status.assert_awaited_with(
            PROPERTY_ID, PIPELINE, "assessment", None, "not needed for leasehold"
        )

    @pytest.mark.asyncio
    async def test_failed_note_reports_error(self, mock_store, scheduler):
        """A failed debounced write is reported through the error callback."""
        errors = []
        mock_store.upsert_status = AsyncMock(return_value=UpsertResult.FAILURE)
        writer = StatusWriteService(mock_store, scheduler=scheduler, on_write_error=errors.append)
        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "lost")

        await scheduler.run_all()

        assert len(errors) == 1
        assert errors[0].key == (PROPERTY_ID, PIPELINE, "assessment")
        assert writer.get_local_status(PROPERTY_ID, PIPELINE, "assessment") is None


class TestInFlightWrites:
    """Test edits made while an earlier write for the same key is awaiting the store."""

    @pytest.mark.asyncio
    async def test_newer_edit_survives_confirmation(self, mock_store, scheduler):
        """Confirming an older write keeps the newer local edit."""
        release = asyncio.Event()
        mock_store.upsert_status = AsyncMock(side_effect=blocking_upsert(release))
        writer = StatusWriteService(mock_store, scheduler=scheduler)

        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "a")
        first = asyncio.create_task(scheduler.run_all())
        await let_tasks_run()

        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "ab")
        release.set()
        await first

        assert writer.get_local_status(PROPERTY_ID, PIPELINE, "assessment").note == "ab"
        assert writer.has_pending(PROPERTY_ID, PIPELINE, "assessment")

        await scheduler.run_all()
        assert writer.get_local_status(PROPERTY_ID, PIPELINE, "assessment") is None
        mock_store.upsert_status.assert_awaited_with(PROPERTY_ID, PIPELINE, "assessment", None, "ab")

    @pytest.mark.asyncio
    async def test_newer_edit_survives_failure(self, mock_store, scheduler):
        """A failing older write does not roll back the newer local edit."""
        release = asyncio.Event()
        mock_store.upsert_status = AsyncMock(side_effect=blocking_upsert(release, UpsertResult.FAILURE))
        errors = []
        writer = StatusWriteService(mock_store, scheduler=scheduler, on_write_error=errors.append)

        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "a")
        first = asyncio.create_task(scheduler.run_all())
        await let_tasks_run()

        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "ab")
        release.set()
        await first

        assert len(errors) == 1
        assert writer.get_local_status(PROPERTY_ID, PIPELINE, "assessment").note == "ab"


class TestPendingWrites:
    """Test cancelling and flushing pending note writes."""

    @pytest.mark.asyncio
    async def test_cancel_pending_for_entity(self, mock_store, scheduler):
        """Leaving a property cancels only its pending writes."""
        writer = StatusWriteService(mock_store, scheduler=scheduler)
        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "a")
        writer.update_note(OTHER_PROPERTY_ID, PIPELINE, "assessment", "b")

        assert writer.cancel_pending(PROPERTY_ID) == 1
        assert writer.get_local_status(PROPERTY_ID, PIPELINE, "assessment") is None
        assert writer.has_pending(OTHER_PROPERTY_ID, PIPELINE, "assessment")

    @pytest.mark.asyncio
    async def test_flush_pending(self, mock_store, scheduler):
        """Flushing writes every pending note now."""
        writer = StatusWriteService(mock_store, scheduler=scheduler)
        writer.update_note(PROPERTY_ID, PIPELINE, "assessment", "a")
        writer.update_note(PROPERTY_ID, PIPELINE, "stamp_duty", "b")

        assert await writer.flush_pending() == 2
        assert mock_store.upsert_status.await_count == 2
        assert scheduler.live() == []


class TestAsyncioScheduler:
    """Test the event loop scheduler."""

    @pytest.mark.asyncio
    async def test_runs_coroutine_after_delay(self):
        """Scheduled coroutines run on the loop."""
        ran = asyncio.Event()

        async def fn():
            ran.set()

        AsyncioScheduler().schedule("k", 0.01, fn)
        await asyncio.wait_for(ran.wait(), timeout=1)
        assert ran.is_set()

    @pytest.mark.asyncio
    async def test_cancelled_callback_does_not_run(self):
        """A cancelled callback never fires."""
        calls = []
        token = AsyncioScheduler().schedule("k", 0.01, lambda: calls.append(1))
        token.cancel()
        await asyncio.sleep(0.05)
        assert calls == []
        assert token.cancelled
