"""
Expiry Sweeper Tests

Single sweeps against a real store, failure isolation, and the start/stop
state machine.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from services.expiry_sweeper import ExpirySweeper
from utils.types import MatchStatus, SweeperState, TeardownResult

NOW = 1_700_000_000_000


async def _wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_tears_down_only_expired_matches(self, manager, json_store, provisioner):
        await json_store.upsert("1", "A1", "B1", NOW - 60_000)
        await json_store.upsert("2", "A2", "B2", NOW - 1)
        await json_store.upsert("3", "A3", "B3", NOW + 60_000)
        sweeper = ExpirySweeper(manager, interval_seconds=300, clock=lambda: NOW)

        cleaned = await sweeper.run_once()

        assert cleaned == 2
        assert sorted(provisioner.delete_calls) == ["A1", "A2", "B1", "B2"]
        assert (await json_store.get_match("1")).status is MatchStatus.DELETED
        assert (await json_store.get_match("2")).status is MatchStatus.DELETED
        assert (await json_store.get_match("3")).status is MatchStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_nothing_expired_is_noop(self, manager, json_store, provisioner):
        await json_store.upsert("1", "A1", "B1", None)
        sweeper = ExpirySweeper(manager, clock=lambda: NOW)

        assert await sweeper.run_once() == 0
        assert provisioner.delete_calls == []

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_sweep(self, manager, json_store):
        await json_store.upsert("1", "A1", "B1", NOW - 2)
        await json_store.upsert("2", "A2", "B2", NOW - 1)
        manager.teardown = AsyncMock(
            side_effect=[RuntimeError("boom"), TeardownResult(success=True, match_id="2")]
        )
        sweeper = ExpirySweeper(manager, clock=lambda: NOW)

        cleaned = await sweeper.run_once()

        assert cleaned == 1
        assert [c.args[0] for c in manager.teardown.await_args_list] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_channel_delete_failure_still_marks_deleted(self, manager, json_store, provisioner):
        await json_store.upsert("1", "A1", "B1", NOW - 1)
        provisioner.fail_delete = {"A1", "B1"}
        sweeper = ExpirySweeper(manager, clock=lambda: NOW)

        assert await sweeper.run_once() == 1
        assert (await json_store.get_match("1")).status is MatchStatus.DELETED

    @pytest.mark.asyncio
    async def test_store_read_failure_is_logged(self, manager, json_store):
        json_store.get_expired_active_matches = AsyncMock(side_effect=OSError("disk"))
        sweeper = ExpirySweeper(manager, clock=lambda: NOW)

        assert await sweeper.run_once() == 0


class TestLifecycle:
    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            ExpirySweeper(MagicMock(), interval_seconds=0)

    @pytest.mark.asyncio
    async def test_start_sweeps_immediately_and_stop_returns_to_stopped(
        self, manager, json_store
    ):
        await json_store.upsert("1", "A1", "B1", NOW - 1)
        sweeper = ExpirySweeper(manager, interval_seconds=3600, clock=lambda: NOW)
        assert sweeper.state is SweeperState.STOPPED

        sweeper.start()
        assert sweeper.state is SweeperState.RUNNING
        await _wait_for(lambda: not json_store._records["1"].is_active)

        await sweeper.stop()
        assert sweeper.state is SweeperState.STOPPED

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_loop(self, manager):
        sweeper = ExpirySweeper(manager, interval_seconds=3600, clock=lambda: NOW)
        sweeper.run_once = AsyncMock(return_value=0)

        sweeper.start()
        sweeper.start()
        await _wait_for(lambda: sweeper.run_once.await_count >= 1)
        await sweeper.stop()

        assert sweeper.run_once.await_count == 1

    @pytest.mark.asyncio
    async def test_stop_waits_for_sweep_in_progress(self, manager):
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def slow_sweep():
            started.set()
            await release.wait()
            finished.append(True)
            return 0

        sweeper = ExpirySweeper(manager, interval_seconds=3600, clock=lambda: NOW)
        sweeper.run_once = slow_sweep
        sweeper.start()
        await started.wait()

        stopping = asyncio.create_task(sweeper.stop())
        await asyncio.sleep(0.05)
        assert not stopping.done()

        release.set()
        await stopping

        assert finished == [True]
        assert sweeper.state is SweeperState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_when_stopped_is_noop(self, manager):
        sweeper = ExpirySweeper(manager)

        await sweeper.stop()

        assert sweeper.state is SweeperState.STOPPED
