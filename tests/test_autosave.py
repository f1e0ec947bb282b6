"""Tests for the debounced FNA auto-save coordinator."""

import asyncio

import pytest

from app.domain.fna.autosave import AutoSaveCoordinator, AutoSaveRegistry

QUIET = 0.05


class RecordingSave:
    def __init__(self, delay=0.0, fail_times=0):
        self.calls = []
        self.delay = delay
        self.fail_times = fail_times
        self.active = 0
        self.max_active = 0

    async def __call__(self, snapshot):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_times:
                self.fail_times -= 1
                raise RuntimeError("database unavailable")
            self.calls.append(snapshot)
        finally:
            self.active -= 1


class TestAutoSaveCoordinator:
    @pytest.mark.asyncio
    async def test_rapid_changes_collapse_into_one_save_of_latest_snapshot(self):
        save = RecordingSave()
        coordinator = AutoSaveCoordinator(save, quiet_period=QUIET)

        coordinator.notify({"v": 1})
        coordinator.notify({"v": 2})
        coordinator.notify({"v": 3})
        assert coordinator.pending is True

        await asyncio.sleep(QUIET * 3)
        await coordinator.wait_idle()

        assert save.calls == [{"v": 3}]
        assert coordinator.last_saved_at is not None
        assert coordinator.pending is False

    @pytest.mark.asyncio
    async def test_nothing_saved_before_quiet_period(self):
        save = RecordingSave()
        coordinator = AutoSaveCoordinator(save, quiet_period=QUIET * 4)

        coordinator.notify({"v": 1})
        await asyncio.sleep(QUIET)

        assert save.calls == []
        coordinator.cancel()

    @pytest.mark.asyncio
    async def test_flush_saves_immediately_and_only_once(self):
        save = RecordingSave()
        coordinator = AutoSaveCoordinator(save, quiet_period=QUIET)

        coordinator.notify({"v": 1})
        await coordinator.flush()
        await asyncio.sleep(QUIET * 2)
        await coordinator.wait_idle()

        assert save.calls == [{"v": 1}]

    @pytest.mark.asyncio
    async def test_cancel_drops_scheduled_save(self):
        save = RecordingSave()
        coordinator = AutoSaveCoordinator(save, quiet_period=QUIET)

        coordinator.notify({"v": 1})
        coordinator.cancel()
        await asyncio.sleep(QUIET * 2)

        assert save.calls == []

    @pytest.mark.asyncio
    async def test_failure_is_reported_and_next_change_retries(self):
        errors = []
        save = RecordingSave(fail_times=1)
        coordinator = AutoSaveCoordinator(save, quiet_period=QUIET, on_error=errors.append)

        coordinator.notify({"v": 1})
        await asyncio.sleep(QUIET * 3)
        await coordinator.wait_idle()

        assert save.calls == []
        assert coordinator.last_error == "database unavailable"
        assert len(errors) == 1

        # No automatic retry
        await asyncio.sleep(QUIET * 2)
        assert save.calls == []

        coordinator.notify({"v": 2})
        await asyncio.sleep(QUIET * 3)
        await coordinator.wait_idle()

        assert save.calls == [{"v": 2}]
        assert coordinator.last_error is None

    @pytest.mark.asyncio
    async def test_saves_never_overlap_and_latest_wins(self):
        save = RecordingSave(delay=QUIET * 2)
        coordinator = AutoSaveCoordinator(save, quiet_period=QUIET)

        coordinator.notify({"v": 1})
        await asyncio.sleep(QUIET * 1.5)  # first save now in flight
        coordinator.notify({"v": 2})
        await asyncio.sleep(QUIET * 6)
        await coordinator.wait_idle()

        assert save.max_active == 1
        assert save.calls[-1] == {"v": 2}

    @pytest.mark.asyncio
    async def test_status_shape(self):
        coordinator = AutoSaveCoordinator(RecordingSave(), quiet_period=QUIET)
        assert coordinator.status() == {
            "pending": False,
            "saving": False,
            "last_saved_at": None,
            "last_error": None,
        }


class TestAutoSaveRegistry:
    @pytest.mark.asyncio
    async def test_one_coordinator_per_client_and_flush_all(self):
        saves = {}

        def factory(client_id):
            saves[client_id] = RecordingSave()
            return saves[client_id]

        registry = AutoSaveRegistry(factory, quiet_period=10)
        first = registry.get(1)
        assert registry.get(1) is first
        assert registry.find(2) is None

        registry.get(1).notify({"a": 1})
        registry.get(2).notify({"b": 2})
        await registry.flush_all()

        assert saves[1].calls == [{"a": 1}]
        assert saves[2].calls == [{"b": 2}]
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_saved_coordinators_are_released(self):
        registry = AutoSaveRegistry(lambda client_id: RecordingSave(), quiet_period=QUIET)

        for client_id in range(5):
            registry.get(client_id).notify({"client": client_id})
        assert len(registry) == 5

        await asyncio.sleep(QUIET * 3)
        await registry.flush_all()

        assert len(registry) == 0
        assert registry.find(0) is None

    @pytest.mark.asyncio
    async def test_failed_coordinator_kept_for_its_error(self):
        registry = AutoSaveRegistry(lambda client_id: RecordingSave(fail_times=1), quiet_period=10)

        registry.get(1).notify({"v": 1})
        await registry.flush_all()

        assert registry.find(1).last_error == "database unavailable"

    @pytest.mark.asyncio
    async def test_coordinator_kept_while_newer_draft_is_pending(self):
        save = RecordingSave(delay=QUIET * 2)
        registry = AutoSaveRegistry(lambda client_id: save, quiet_period=QUIET)

        registry.get(1).notify({"v": 1})
        await asyncio.sleep(QUIET * 1.5)  # first save in flight
        registry.get(1).notify({"v": 2})
        await asyncio.sleep(QUIET * 2)

        assert registry.find(1) is not None
        await asyncio.sleep(QUIET * 4)
        await registry.flush_all()
        assert save.calls[-1] == {"v": 2}
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_cancel_drops_scheduled_draft_and_waits_for_inflight_save(self):
        save = RecordingSave(delay=QUIET * 2)
        registry = AutoSaveRegistry(lambda client_id: save, quiet_period=QUIET)

        registry.get(1).notify({"v": 1})
        await asyncio.sleep(QUIET * 1.5)  # save in flight
        registry.get(1).notify({"v": 2})  # scheduled behind it
        await registry.cancel(1)

        assert save.active == 0
        assert save.calls == [{"v": 1}]
        assert registry.find(1) is None

        await asyncio.sleep(QUIET * 3)
        assert save.calls == [{"v": 1}]

    @pytest.mark.asyncio
    async def test_cancel_unknown_client_is_noop(self):
        registry = AutoSaveRegistry(lambda client_id: RecordingSave(), quiet_period=QUIET)
        await registry.cancel(42)
        assert len(registry) == 0
