"""
Debounced auto-save for FNA answers.

AutoSaveCoordinator is a last-write-wins debouncer: every notify() restarts
the quiet-period timer, and when the timer fires the *latest* snapshot is
persisted. Saves are serialized with a lock so an older snapshot can never
land on top of a newer one. A failed save is recorded and reported through
``on_error``; it is not retried, the next change schedules a new attempt.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Optional

from ...config import AUTOSAVE_QUIET_PERIOD_MS
from ...shared.validators import utc_now

logger = logging.getLogger(__name__)

SaveFn = Callable[[dict[str, Any]], Awaitable[Any]]
ErrorFn = Callable[[Exception], None]


class AutoSaveCoordinator:
    def __init__(
        self,
        save: SaveFn,
        quiet_period: float = AUTOSAVE_QUIET_PERIOD_MS / 1000,
        on_error: Optional[ErrorFn] = None,
        on_idle: Optional[Callable[[], None]] = None,
        name: str = "fna",
    ):
        self._save = save
        self.quiet_period = quiet_period
        self.on_error = on_error
        self.on_idle = on_idle
        self.name = name

        self._snapshot: Optional[dict[str, Any]] = None
        self._version = 0
        self._saved_version = 0
        self._timer: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

        self.saving = False
        self.last_saved_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def notify(self, snapshot: dict[str, Any]) -> None:
        """Record a new snapshot and restart the quiet period. Must run inside an event loop."""
        self._snapshot = snapshot
        self._version += 1
        self._cancel_timer()
        self._timer = self._spawn(self._wait_then_save())

    async def flush(self) -> None:
        """Skip the remaining quiet period and persist now"""
        self._cancel_timer()
        await self._save_latest()

    def cancel(self) -> None:
        """Drop a scheduled save; an in-flight save is left to finish"""
        self._cancel_timer()

    async def wait_idle(self) -> None:
        """Wait until no save is scheduled or running"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def status(self) -> dict:
        return {
            "pending": self.pending,
            "saving": self.saving,
            "last_saved_at": self.last_saved_at.isoformat() if self.last_saved_at else None,
            "last_error": self.last_error,
        }

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _wait_then_save(self) -> None:
        await asyncio.sleep(self.quiet_period)
        # Detach the save from the timer so a later notify() can't cancel a write mid-flight
        self._spawn(self._save_latest())

    async def _save_latest(self) -> None:
        async with self._lock:
            if self._snapshot is None or self._version == self._saved_version:
                return

            version = self._version
            snapshot = self._snapshot
            self.saving = True
            try:
                await self._save(snapshot)
            except Exception as e:
                self.last_error = str(e)
                logger.error(f"❌ Auto-save failed for {self.name}: {e}")
                if self.on_error:
                    self.on_error(e)
            else:
                self._saved_version = version
                self.last_saved_at = utc_now()
                self.last_error = None
                logger.debug(f"💾 Auto-saved {self.name} (version {version})")
            finally:
                self.saving = False

        if self.on_idle and self.last_error is None and not self.pending and self._version == self._saved_version:
            self.on_idle()


class AutoSaveRegistry:
    """
    One coordinator per client, created on first use and dropped again once
    its latest snapshot is saved. A coordinator whose last save failed is kept
    so the error stays visible until the next change.
    """

    def __init__(self, save_factory: Callable[[int], SaveFn], quiet_period: Optional[float] = None):
        self._save_factory = save_factory
        self._quiet_period = quiet_period
        self._coordinators: dict[int, AutoSaveCoordinator] = {}

    def get(self, client_id: int) -> AutoSaveCoordinator:
        coordinator = self._coordinators.get(client_id)
        if coordinator is None:
            kwargs = {"name": f"client {client_id}"}
            if self._quiet_period is not None:
                kwargs["quiet_period"] = self._quiet_period
            coordinator = AutoSaveCoordinator(self._save_factory(client_id), **kwargs)
            coordinator.on_idle = lambda: self._discard(client_id, coordinator)
            self._coordinators[client_id] = coordinator
        return coordinator

    def find(self, client_id: int) -> Optional[AutoSaveCoordinator]:
        return self._coordinators.get(client_id)

    def __len__(self) -> int:
        return len(self._coordinators)

    async def cancel(self, client_id: int) -> None:
        """Drop any scheduled draft for this client and wait out an in-flight save"""
        coordinator = self._coordinators.get(client_id)
        if coordinator is None:
            return
        coordinator.cancel()
        await coordinator.wait_idle()
        # A draft may have arrived while the in-flight save finished
        coordinator.cancel()
        self._discard(client_id, coordinator)

    def _discard(self, client_id: int, coordinator: AutoSaveCoordinator) -> None:
        if self._coordinators.get(client_id) is coordinator:
            del self._coordinators[client_id]

    async def flush_all(self) -> None:
        for coordinator in list(self._coordinators.values()):
            await coordinator.flush()
            await coordinator.wait_idle()
