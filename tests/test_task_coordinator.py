"""
Tests for the long-running task coordinator and the dead-link check task.

Covers start refusal, progress persistence, cancellation (in-process and
through the persisted bit), per-batch failure tolerance and overlapping
runs.
"""

import asyncio

import pytest

from bookmark_sift.core.bookmark_store import BookmarkTree
from bookmark_sift.core.data_models import LinkCheckResult, LinkStatus
from bookmark_sift.core.reachability_cache import CACHE_KEY
from bookmark_sift.core.task_coordinator import (
    DeadLinkCheckTask,
    StartResult,
    chunked,
)
from bookmark_sift.core.task_state import DEAD_LINK_CHECK_KEY, TaskStatus
from bookmark_sift.utils.timeutils import now_ms
from tests.fixtures.fakes import FakeLinkChecker


async def _tree_with(urls):
    tree = BookmarkTree()
    for i, url in enumerate(urls):
        await tree.create(f"Bookmark {i}", url, "1")
    return tree


def _make_task(state_store, tree, settings_manager, cache, checker, notifier=None, batch_size=10):
    return DeadLinkCheckTask(
        state_store,
        tree,
        settings_manager,
        cache,
        checker,
        notifier=notifier,
        batch_size=batch_size,
    )


URLS = [f"https://site{i}.com/" for i in range(5)]


class TestChunked:
    def test_chunks(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert chunked([], 3) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            chunked([1], 0)


class TestStartResult:
    def test_to_dict(self):
        assert StartResult(started=True, skipped=2).to_dict() == {"started": True, "skipped": 2}
        assert StartResult(started=False, message="busy").to_dict() == {
            "started": False,
            "message": "busy",
        }


class TestDeadLinkCheckTask:
    """End-to-end runs of the dead-link task."""

    @pytest.mark.asyncio
    async def test_idle_by_default(self, state_store, settings_manager, reachability_cache):
        task = _make_task(
            state_store, BookmarkTree(), settings_manager, reachability_cache, FakeLinkChecker()
        )
        status = await task.get_status()
        assert status.status == TaskStatus.IDLE
        assert status.checked == 0

    @pytest.mark.asyncio
    async def test_full_run(self, state_store, settings_manager, reachability_cache, notifier):
        tree = await _tree_with(URLS)
        checker = FakeLinkChecker(dead={URLS[1], URLS[3]})
        task = _make_task(
            state_store, tree, settings_manager, reachability_cache, checker, notifier, batch_size=2
        )

        result = await task.start()
        assert result.started is True
        assert result.skipped == 0

        await task.wait()
        status = await task.get_status()

        assert status.status == TaskStatus.COMPLETED
        assert status.checked == status.total == 5
        assert [b.url for b in status.dead_links] == [URLS[1], URLS[3]]
        assert status.completed_at is not None
        assert status.error is None
        assert len(checker.calls) == 3

        cache = await reachability_cache.load()
        assert set(cache) == set(URLS)
        assert cache[URLS[1]].status == LinkStatus.DEAD

        assert notifier.notifications == [
            (
                "Sift - Dead Link Check Complete",
                "Found 2 dead links (2 new, 0 cached) out of 5 bookmarks.",
            )
        ]

    @pytest.mark.asyncio
    async def test_all_working_message(self, state_store, settings_manager, reachability_cache, notifier):
        tree = await _tree_with(URLS[:2])
        task = _make_task(
            state_store, tree, settings_manager, reachability_cache, FakeLinkChecker(), notifier
        )
        await task.start()
        await task.wait()
        assert notifier.notifications[0][1] == "All 2 checked bookmarks are working!"

    @pytest.mark.asyncio
    async def test_fresh_cache_entries_skipped(
        self, state_store, settings_manager, reachability_cache, notifier
    ):
        tree = await _tree_with(URLS[:3])
        await reachability_cache.record_results(
            [
                LinkCheckResult(URLS[0], LinkStatus.ALIVE),
                LinkCheckResult(URLS[1], LinkStatus.DEAD),
            ],
            checked_at=now_ms(),
        )
        checker = FakeLinkChecker()
        task = _make_task(state_store, tree, settings_manager, reachability_cache, checker, notifier)

        result = await task.start()
        await task.wait()
        status = await task.get_status()

        assert result.skipped == 2
        assert checker.calls == [[URLS[2]]]
        assert status.total == 1
        assert status.skipped == 2
        assert status.cached_dead_count == 1
        assert [b.url for b in status.dead_links] == [URLS[1]]
        assert "1 cached" in notifier.notifications[0][1]

    @pytest.mark.asyncio
    async def test_start_while_running_is_refused(
        self, state_store, settings_manager, reachability_cache
    ):
        running = {
            "status": "running",
            "checked": 3,
            "total": 10,
            "deadLinks": [],
            "startedAt": 1,
            "runId": "other-process",
        }
        await state_store.set(DEAD_LINK_CHECK_KEY, running)
        checker = FakeLinkChecker()
        task = _make_task(
            state_store, await _tree_with(URLS), settings_manager, reachability_cache, checker
        )

        result = await task.start()

        assert result.started is False
        assert result.message == "Dead link check already in progress"
        assert await state_store.get(DEAD_LINK_CHECK_KEY) == running
        assert checker.calls == []

    @pytest.mark.asyncio
    async def test_concurrent_starts_only_one_runs(
        self, state_store, settings_manager, reachability_cache
    ):
        gate = asyncio.Event()
        checker = FakeLinkChecker(gate=gate)
        task = _make_task(
            state_store, await _tree_with(URLS), settings_manager, reachability_cache, checker
        )

        results = await asyncio.gather(task.start(), task.start(), task.start())
        gate.set()
        await task.wait()

        assert sum(r.started for r in results) == 1
        assert len(checker.calls) == 1

    @pytest.mark.asyncio
    async def test_cancel_flips_status_immediately(
        self, state_store, settings_manager, reachability_cache, notifier
    ):
        gate = asyncio.Event()
        checker = FakeLinkChecker(gate=gate)
        task = _make_task(
            state_store,
            await _tree_with(URLS),
            settings_manager,
            reachability_cache,
            checker,
            notifier,
            batch_size=1,
        )
        await task.start()
        await checker.entered.wait()

        assert await task.cancel() == {"success": True}
        status = await task.get_status()
        assert status.status == TaskStatus.CANCELLED
        assert status.completed_at is not None
        assert status.cancellation_requested is True
        assert status.checked == 0

        gate.set()
        await task.wait()

        final = await task.get_status()
        assert final.status == TaskStatus.CANCELLED
        assert final.checked == 0
        assert len(checker.calls) == 1
        assert notifier.notifications == []

    @pytest.mark.asyncio
    async def test_cancel_from_another_instance(
        self, state_store, settings_manager, reachability_cache
    ):
        """A cancel persisted by a second coordinator stops the running loop."""
        gate = asyncio.Event()
        checker = FakeLinkChecker(gate=gate)
        tree = await _tree_with(URLS)
        runner = _make_task(
            state_store, tree, settings_manager, reachability_cache, checker, batch_size=1
        )
        other = _make_task(
            state_store, tree, settings_manager, reachability_cache, FakeLinkChecker()
        )

        await runner.start()
        await checker.entered.wait()
        await other.cancel()
        gate.set()
        await runner.wait()

        status = await runner.get_status()
        assert status.status == TaskStatus.CANCELLED
        assert len(checker.calls) == 1

    @pytest.mark.asyncio
    async def test_cancel_when_idle_is_noop(self, state_store, settings_manager, reachability_cache):
        task = _make_task(
            state_store, BookmarkTree(), settings_manager, reachability_cache, FakeLinkChecker()
        )
        assert await task.cancel() == {"success": True}
        assert (await task.get_status()).status == TaskStatus.IDLE

    @pytest.mark.asyncio
    async def test_failing_batch_does_not_stop_the_run(
        self, state_store, settings_manager, reachability_cache
    ):
        checker = FakeLinkChecker(dead={URLS[4]}, failing={URLS[1]})
        task = _make_task(
            state_store,
            await _tree_with(URLS),
            settings_manager,
            reachability_cache,
            checker,
            batch_size=1,
        )

        await task.start()
        await task.wait()
        status = await task.get_status()

        assert len(checker.calls) == 5
        assert status.status == TaskStatus.COMPLETED
        assert status.checked == 5
        assert status.error is None
        assert [b.url for b in status.dead_links] == [URLS[4]]
        assert URLS[1] not in await reachability_cache.load()

    @pytest.mark.asyncio
    async def test_progress_persisted_after_each_batch(
        self, state_store, settings_manager, reachability_cache
    ):
        seen = []

        class ObservingChecker(FakeLinkChecker):
            async def check_links(inner, urls, on_progress=None):
                stored = await state_store.get(DEAD_LINK_CHECK_KEY)
                seen.append(stored["checked"])
                return await super().check_links(urls, on_progress)

        task = _make_task(
            state_store,
            await _tree_with(URLS),
            settings_manager,
            reachability_cache,
            ObservingChecker(),
            batch_size=2,
        )
        await task.start()
        await task.wait()

        assert seen == [0, 2, 4]

    @pytest.mark.asyncio
    async def test_restart_after_cancel_does_not_mix_runs(
        self, state_store, settings_manager, reachability_cache
    ):
        gate = asyncio.Event()
        checker = FakeLinkChecker(gate=gate)
        task = _make_task(
            state_store,
            await _tree_with(URLS),
            settings_manager,
            reachability_cache,
            checker,
            batch_size=5,
        )

        await task.start()
        first_run = task._task
        await checker.entered.wait()
        await task.cancel()

        restarted = await task.start()
        assert restarted.started is True
        running = await task.get_status()
        assert running.status == TaskStatus.RUNNING
        assert running.cancellation_requested is False

        gate.set()
        await first_run
        await task.wait()

        status = await task.get_status()
        assert status.status == TaskStatus.COMPLETED
        assert status.run_id == running.run_id
        assert status.checked == 5

    @pytest.mark.asyncio
    async def test_clear_results(self, state_store, settings_manager, reachability_cache):
        task = _make_task(
            state_store,
            await _tree_with(URLS[:1]),
            settings_manager,
            reachability_cache,
            FakeLinkChecker(),
        )
        await task.start()
        await task.wait()

        await task.clear_results()
        status = await task.get_status()
        assert status.status == TaskStatus.IDLE
        assert status.total == 0
        # The reachability cache is kept
        assert await state_store.get(CACHE_KEY)

    @pytest.mark.asyncio
    async def test_empty_collection_completes(
        self, state_store, settings_manager, reachability_cache, notifier
    ):
        task = _make_task(
            state_store, BookmarkTree(), settings_manager, reachability_cache, FakeLinkChecker(), notifier
        )
        await task.start()
        await task.wait()

        status = await task.get_status()
        assert status.status == TaskStatus.COMPLETED
        assert status.total == 0
        assert notifier.notifications[0][1] == "All 0 checked bookmarks are working!"
