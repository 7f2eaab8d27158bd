# campusgate/services/change_notifier.py
"""
Debounced change feed for dashboards.

SQLAlchemy session events record which tables a transaction touched and,
after commit, tell the ChangeDebouncer. The debouncer coalesces bursts of
notifications inside CHANGE_DEBOUNCE_MS into one refresh on the event loop,
which bumps the ChangeFeed revision and pushes a notice to every subscriber
(the /changes/ws websocket).

This is a hint to re-query, nothing more. Writers never wait on it and
nothing in the ledger or visit workflow depends on it being delivered.
"""

import asyncio
import itertools
from typing import Awaitable, Callable, Optional
from sqlalchemy import event
from campusgate.config import settings
from campusgate.utils.clock import utcnow
from campusgate.utils.logger import get_logger

logger = get_logger(__name__)

RefreshCallback = Callable[[frozenset], Awaitable[None]]


class ChangeDebouncer:
    """Trailing-edge debounce: each notify() restarts the window."""

    def __init__(self, window_ms: Optional[int] = None, on_refresh: Optional[RefreshCallback] = None):
        self.window = (settings.CHANGE_DEBOUNCE_MS if window_ms is None else window_ms) / 1000
        self._callbacks: list[RefreshCallback] = [on_refresh] if on_refresh else []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._pending: set[str] = set()

    def attach(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()

    def detach(self):
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending.clear()
        self._loop = None

    def subscribe(self, callback: RefreshCallback):
        self._callbacks.append(callback)

    def notify(self, table: str):
        """Safe from any thread. Dropped when no loop is attached."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(f"[Changes] No loop attached, dropping change on {table}")
            return
        loop.call_soon_threadsafe(self._arm, table)

    def _arm(self, table: str):
        self._pending.add(table)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self.window, self._fire)

    def _fire(self):
        tables = frozenset(self._pending)
        self._pending.clear()
        self._timer = None
        if tables:
            self._loop.create_task(self._run(tables))

    async def _run(self, tables: frozenset):
        for callback in list(self._callbacks):
            try:
                await callback(tables)
            except Exception as e:
                logger.error(f"[Changes] Refresh listener failed: {e}", exc_info=True)


class ChangeFeed:
    """Revision counter plus fan-out queues for websocket subscribers."""

    def __init__(self):
        self.revision = 0
        self.last_tables: list[str] = []
        self.last_changed_at = None
        self._queues: set[asyncio.Queue] = set()

    def snapshot(self) -> dict:
        return {
            "revision": self.revision,
            "tables": self.last_tables,
            "at": self.last_changed_at.isoformat() if self.last_changed_at else None,
        }

    async def publish(self, tables: frozenset):
        self.revision += 1
        self.last_tables = sorted(tables)
        self.last_changed_at = utcnow()
        notice = self.snapshot()
        logger.info(f"[Changes] Revision {self.revision}: {', '.join(self.last_tables)}")
        for queue in list(self._queues):
            queue.put_nowait(notice)

    def open(self) -> asyncio.Queue:
        queue = asyncio.Queue()
        self._queues.add(queue)
        return queue

    def close(self, queue: asyncio.Queue):
        self._queues.discard(queue)


change_feed = ChangeFeed()
change_notifier = ChangeDebouncer(on_refresh=change_feed.publish)


def install_change_tracking(session_factory, notifier: ChangeDebouncer = change_notifier):
    """Wire session events of `session_factory` (a sessionmaker) to `notifier`."""

    def _touched(session) -> set:
        return session.info.setdefault("changed_tables", set())

    @event.listens_for(session_factory, "after_flush")
    def _collect_flushed(session, flush_context):
        for obj in itertools.chain(session.new, session.dirty, session.deleted):
            table = getattr(obj, "__tablename__", None)
            if table:
                _touched(session).add(table)

    @event.listens_for(session_factory, "do_orm_execute")
    def _collect_bulk(orm_execute_state):
        if orm_execute_state.is_update or orm_execute_state.is_delete:
            table = getattr(orm_execute_state.statement, "table", None)
            if table is not None:
                _touched(orm_execute_state.session).add(table.name)

    @event.listens_for(session_factory, "after_commit")
    def _publish(session):
        if session.in_nested_transaction():
            return    # SAVEPOINT release; wait for the outer commit
        for table in sorted(session.info.pop("changed_tables", ())):
            notifier.notify(table)

    @event.listens_for(session_factory, "after_soft_rollback")
    def _discard(session, previous_transaction):
        if previous_transaction.parent is None:
            session.info.pop("changed_tables", None)
