from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from loguru import logger

from .editor import Confirm, LayoutEditorState
from .layout import Layout
from .models import LayoutDocument
from .persistence import EventInPast, LayoutStore, StoreError, deserialize, prepare_for_save
from .storage import as_utc, utc_now
from .viewport import Viewport


@dataclass(frozen=True)
class SaveResult:
    ok: bool
    seats: int = 0
    sections: int = 0
    error: Optional[StoreError] = None

    @property
    def message(self) -> str:
        if self.ok:
            return f"saved {self.seats} seats in {self.sections} sections"
        return str(self.error) if self.error is not None else "save failed"


class EditorSession:
    """One event's layout opened for editing against a ``LayoutStore``."""

    def __init__(self, event_id: str, store: LayoutStore, editor: LayoutEditorState):
        self.event_id = event_id
        self.store = store
        self.editor = editor

    @property
    def layout(self) -> Layout:
        return self.editor.layout

    @property
    def read_only(self) -> bool:
        return self.editor.read_only

    @classmethod
    def open(
        cls,
        event_id: str,
        store: LayoutStore,
        now: Optional[datetime] = None,
        *,
        confirm: Optional[Confirm] = None,
        viewport: Optional[Viewport] = None,
    ) -> "EditorSession":
        ticket_types = store.list_ticket_types(event_id)
        raw = store.load(event_id)
        layout = deserialize(raw, ticket_types) if raw is not None else None
        if layout is None:
            logger.info("no usable layout for event {}; starting fresh", event_id)
            layout = Layout(ticket_types=ticket_types)

        starts_at = store.event_starts_at(event_id)
        now = as_utc(now) if now is not None else utc_now()
        read_only = starts_at is not None and as_utc(starts_at) < now
        if read_only:
            logger.info("event {} has already started; layout opened read-only", event_id)

        kwargs = {"viewport": viewport, "read_only": read_only}
        if confirm is not None:
            kwargs["confirm"] = confirm
        return cls(event_id, store, LayoutEditorState(layout, **kwargs))

    def _prepare(self, confirm: Optional[Confirm]) -> LayoutDocument:
        if self.read_only:
            raise EventInPast("cannot modify the layout of a past event")
        return prepare_for_save(self.layout, confirm or self.editor.confirm)

    def _store(self, doc: LayoutDocument) -> SaveResult:
        try:
            self.store.save(self.event_id, doc)
        except StoreError as e:
            logger.warning("saving layout for event {} failed: {}", self.event_id, e)
            return SaveResult(ok=False, error=e)
        logger.info("saved layout for event {}: {} seats", self.event_id, len(doc.seats))
        return SaveResult(ok=True, seats=len(doc.seats), sections=len(doc.sections))

    def save(self, confirm: Optional[Confirm] = None) -> SaveResult:
        """Save the current layout. Failures are reported, the in-memory layout is left as is."""
        try:
            doc = self._prepare(confirm)
        except StoreError as e:
            logger.warning("layout for event {} not saved: {}", self.event_id, e)
            return SaveResult(ok=False, error=e)
        return self._store(doc)

    def save_in_background(self, executor: Executor, confirm: Optional[Confirm] = None) -> "Future[SaveResult]":
        # The document is snapshotted here; later edits do not leak into this save.
        try:
            doc = self._prepare(confirm)
        except StoreError as e:
            logger.warning("layout for event {} not saved: {}", self.event_id, e)
            done: Future[SaveResult] = Future()
            done.set_result(SaveResult(ok=False, error=e))
            return done
        return executor.submit(self._store, doc)
