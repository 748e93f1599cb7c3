"""
Property Document Tracker - Status Write Service

Persists N/A toggles and notes for document types.

Latency policy:
- N/A toggles are written immediately.
- Note edits are debounced per (entity, pipeline, doc type). A newer edit for
  the same key cancels the pending write; other keys are unaffected.

Timers are not owned by this service: a scheduler with
`schedule(key, delay_seconds, fn) -> CancelToken` is injected. The default
AsyncioScheduler uses the running event loop; tests use a manual one.

Edits are held locally, tagged with a sequence number, only until the store
confirms them; reads lay them over the stored status and otherwise trust the
store. A write settles its edit only if no newer edit for the same key
replaced it in the meantime. On a duplicate-key conflict the write counts as
already applied and the status is reloaded from the store. On any other
failure the edit is dropped and StatusWriteError is raised.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Dict, Tuple, Callable, Any

from pymongo.errors import PyMongoError

from .completion import DocumentStatusRecord
from .document_store import DocumentStore, UpsertResult
from .tracker_config import NOTE_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)

StatusKey = Tuple[str, str, str]  # (entity_id, pipeline, doc_type_key)


class StatusWriteError(Exception):
    """Persistence failed; `message` is safe to show to the user."""

    def __init__(self, message: str, key: Optional[StatusKey] = None):
        super().__init__(message)
        self.message = message
        self.key = key


# =============================================================================
# SCHEDULING
# =============================================================================

class CancelToken:
    """Handle for a scheduled callback."""

    def __init__(self, cancel_fn: Optional[Callable[[], Any]] = None):
        self._cancel_fn = cancel_fn
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._cancel_fn:
            self._cancel_fn()


class AsyncioScheduler:
    """Runs `fn` after `delay_seconds` on the current event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._tasks = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def schedule(self, key: Any, delay_seconds: float, fn: Callable[[], Any]) -> CancelToken:
        loop = self._get_loop()

        def fire():
            result = fn()
            if inspect.isawaitable(result):
                task = loop.create_task(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

        handle = loop.call_later(max(delay_seconds, 0), fire)
        return CancelToken(handle.cancel)

# =============================================================================
# WRITE SERVICE
# =============================================================================

@dataclass
class PendingStatus:
    """An unconfirmed edit. None fields leave the stored value as it is."""
    seq: int
    is_not_applicable: Optional[bool] = None
    note: Optional[str] = None

    def apply(self, stored: Optional[DocumentStatusRecord], doc_type_key: str) -> DocumentStatusRecord:
        return DocumentStatusRecord(
            doc_type_key=doc_type_key,
            is_not_applicable=(
                self.is_not_applicable if self.is_not_applicable is not None
                else bool(stored and stored.is_not_applicable)
            ),
            note=self.note if self.note is not None else (stored.note if stored else ""),
            updated_at=datetime.now(timezone.utc).isoformat(),
        )


class StatusWriteService:
    """Immediate N/A writes and debounced note writes against a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        scheduler=None,
        note_debounce_seconds: float = NOTE_DEBOUNCE_SECONDS,
        on_write_error: Optional[Callable[[StatusWriteError], Any]] = None
    ):
        self.store = store
        self.scheduler = scheduler or AsyncioScheduler()
        self.note_debounce_seconds = note_debounce_seconds
        self.on_write_error = on_write_error

        self._seq = 0
        self._pending: Dict[StatusKey, Tuple[CancelToken, Callable[[], Any]]] = {}
        self._local: Dict[StatusKey, PendingStatus] = {}

    # ==================== LOCAL STATE ====================

    def get_local_status(
        self,
        entity_id: str,
        pipeline: str,
        doc_type_key: str,
        stored: Optional[DocumentStatusRecord] = None
    ) -> Optional[DocumentStatusRecord]:
        """
        The stored status with any unconfirmed edit laid over it, or None when
        nothing is waiting on persistence. Confirmed writes are not kept here;
        the store stays the source of truth.
        """
        edit = self._local.get((entity_id, pipeline, doc_type_key))
        if edit is None:
            return None
        return edit.apply(stored, doc_type_key)

    def has_pending(self, entity_id: str, pipeline: str, doc_type_key: str) -> bool:
        return (entity_id, pipeline, doc_type_key) in self._pending

    def _apply_local(self, key: StatusKey, is_not_applicable: Optional[bool], note: Optional[str]) -> PendingStatus:
        # Fields not touched by this edit keep the value of an earlier unconfirmed edit
        previous = self._local.get(key)
        if previous:
            if is_not_applicable is None:
                is_not_applicable = previous.is_not_applicable
            if note is None:
                note = previous.note

        self._seq += 1
        edit = PendingStatus(seq=self._seq, is_not_applicable=is_not_applicable, note=note)
        self._local[key] = edit
        return edit

    def _settle(self, key: StatusKey, seq: int) -> None:
        """Drop the local edit unless a newer one replaced it while the write was in flight."""
        current = self._local.get(key)
        if current and current.seq == seq:
            del self._local[key]

    # ==================== WRITES ====================

    async def _write(self, key: StatusKey, edit: PendingStatus) -> Optional[DocumentStatusRecord]:
        entity_id, pipeline, doc_type_key = key
        result = await self.store.upsert_status(
            entity_id, pipeline, doc_type_key, edit.is_not_applicable, edit.note
        )

        if result == UpsertResult.SUCCESS:
            self._settle(key, edit.seq)
            logger.info("Status saved for %s/%s/%s (is_na=%s)", entity_id, pipeline, doc_type_key, edit.is_not_applicable)
            return edit.apply(None, doc_type_key)

        if result == UpsertResult.CONFLICT:
            try:
                status = await self.store.get_status(entity_id, pipeline, doc_type_key)
            except PyMongoError as e:
                self._settle(key, edit.seq)
                logger.error("Reload after conflict failed for %s/%s/%s: %s", entity_id, pipeline, doc_type_key, str(e))
                raise StatusWriteError("Failed to update document status. Please try again.", key) from e
            self._settle(key, edit.seq)
            logger.info("Status conflict for %s/%s/%s treated as applied, reloaded", entity_id, pipeline, doc_type_key)
            return status

        self._settle(key, edit.seq)
        raise StatusWriteError("Failed to update document status. Please try again.", key)

    async def set_not_applicable(
        self,
        entity_id: str,
        pipeline: str,
        doc_type_key: str,
        is_not_applicable: bool,
        note: Optional[str] = None
    ) -> Optional[DocumentStatusRecord]:
        """
        Write an N/A toggle now. A pending note write for the same document
        type is cancelled and its note is carried into this write.
        """
        key = (entity_id, pipeline, doc_type_key)
        self._cancel_key(key)
        edit = self._apply_local(key, is_not_applicable, note)
        return await self._write(key, edit)

    def update_note(
        self,
        entity_id: str,
        pipeline: str,
        doc_type_key: str,
        note: str,
        is_not_applicable: Optional[bool] = None
    ) -> CancelToken:
        """Record the note locally now and schedule its write after the debounce window."""
        key = (entity_id, pipeline, doc_type_key)
        self._cancel_key(key)
        edit = self._apply_local(key, is_not_applicable, note)

        async def run():
            self._pending.pop(key, None)
            try:
                await self._write(key, edit)
            except StatusWriteError as e:
                logger.error("Debounced note write failed for %s/%s/%s", *key)
                if self.on_write_error:
                    self.on_write_error(e)

        token = self.scheduler.schedule(key, self.note_debounce_seconds, run)
        self._pending[key] = (token, run)
        return token

    # ==================== PENDING WRITES ====================

    def _cancel_key(self, key: StatusKey) -> bool:
        pending = self._pending.pop(key, None)
        if pending:
            pending[0].cancel()
            return True
        return False

    def cancel_pending(self, entity_id: Optional[str] = None) -> int:
        """Cancel pending note writes (all, or one entity's). Local edits are dropped."""
        keys = [k for k in self._pending if entity_id is None or k[0] == entity_id]
        for key in keys:
            self._cancel_key(key)
            self._local.pop(key, None)
        return len(keys)

    async def flush_pending(self) -> int:
        """Run every pending note write now, e.g. on shutdown."""
        pending = list(self._pending.items())
        for key, (token, run) in pending:
            token.cancel()
            await run()
        return len(pending)
