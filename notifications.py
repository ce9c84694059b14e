"""Row-level change notifications for the ledger tables.

ORM inserts, updates and deletes are collected per session and delivered to
matching channels once the session commits, so a listener that re-reads the
store always sees the committed rows. Rolled back work is never announced.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session, object_session

from models import BudgetCategory, Transaction


logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    insert = "INSERT"
    update = "UPDATE"
    delete = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    kind: ChangeKind
    owner_id: Optional[str]
    record_id: Optional[str]


ChangeCallback = Callable[[ChangeEvent], None]


class Channel:
    """Subscription handle for one (table, owner) filter.

    Closing is idempotent; a closed channel receives nothing further.
    """

    def __init__(
        self, feed: "ChangeFeed", table: str, owner_id: str, callback: ChangeCallback
    ) -> None:
        self.feed = feed
        self.table = table
        self.owner_id = owner_id
        self.callback = callback
        self.closed = False

    def matches(self, change: ChangeEvent) -> bool:
        return (
            not self.closed
            and change.table == self.table
            and change.owner_id == self.owner_id
        )

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.feed._remove(self)

    def __enter__(self) -> "Channel":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ChangeFeed:
    def __init__(self) -> None:
        self._channels: list[Channel] = []
        self._lock = threading.Lock()
        self._info_key = f"change_feed_{id(self)}"
        self._watched: list[type] = []
        self._installed = False

    def install(self, *mapped_classes: type) -> "ChangeFeed":
        for cls in mapped_classes:
            if cls in self._watched:
                continue
            event.listen(cls, "after_insert", self._on_insert)
            event.listen(cls, "after_update", self._on_update)
            event.listen(cls, "after_delete", self._on_delete)
            self._watched.append(cls)
        if not self._installed:
            event.listen(Session, "after_commit", self._on_commit)
            event.listen(Session, "after_rollback", self._on_rollback)
            self._installed = True
        return self

    def uninstall(self) -> None:
        for cls in self._watched:
            event.remove(cls, "after_insert", self._on_insert)
            event.remove(cls, "after_update", self._on_update)
            event.remove(cls, "after_delete", self._on_delete)
        self._watched = []
        if self._installed:
            event.remove(Session, "after_commit", self._on_commit)
            event.remove(Session, "after_rollback", self._on_rollback)
            self._installed = False

    def channel(self, table: str, owner_id: str, callback: ChangeCallback) -> Channel:
        handle = Channel(self, table, owner_id, callback)
        with self._lock:
            self._channels.append(handle)
        logger.debug(f"channel_open: table={table} owner={owner_id}")
        return handle

    def active_channels(
        self, table: Optional[str] = None, owner_id: Optional[str] = None
    ) -> list[Channel]:
        with self._lock:
            return [
                ch
                for ch in self._channels
                if (table is None or ch.table == table)
                and (owner_id is None or ch.owner_id == owner_id)
            ]

    def publish(self, change: ChangeEvent) -> int:
        with self._lock:
            targets = [ch for ch in self._channels if ch.matches(change)]
        delivered = 0
        for ch in targets:
            try:
                ch.callback(change)
                delivered += 1
            except Exception:
                logger.exception(
                    f"channel_callback_failed: table={change.table} owner={change.owner_id}"
                )
        return delivered

    def _remove(self, handle: Channel) -> None:
        with self._lock:
            if handle in self._channels:
                self._channels.remove(handle)
        logger.debug(f"channel_close: table={handle.table} owner={handle.owner_id}")

    def _record(self, kind: ChangeKind, target) -> None:
        session = object_session(target)
        if session is None:
            return
        pending = session.info.setdefault(self._info_key, [])
        pending.append(
            ChangeEvent(
                table=target.__tablename__,
                kind=kind,
                owner_id=getattr(target, "owner_id", None),
                record_id=getattr(target, "id", None),
            )
        )

    def _on_insert(self, _mapper, _connection, target) -> None:
        self._record(ChangeKind.insert, target)

    def _on_update(self, _mapper, _connection, target) -> None:
        self._record(ChangeKind.update, target)

    def _on_delete(self, _mapper, _connection, target) -> None:
        self._record(ChangeKind.delete, target)

    def _on_commit(self, session: Session) -> None:
        pending = session.info.pop(self._info_key, None)
        for change in pending or []:
            self.publish(change)

    def _on_rollback(self, session: Session) -> None:
        session.info.pop(self._info_key, None)


change_feed = ChangeFeed().install(Transaction, BudgetCategory)
