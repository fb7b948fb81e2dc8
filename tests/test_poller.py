"""Tests for the background update poller."""

import asyncio

from git_doc_sync.sync.models import SyncPhase
from git_doc_sync.sync.poller import UpdatePoller


async def test_poll_once_records_status(session_registry, sync_session, fake_backend):
    fake_backend.repo_status = fake_backend.repo_status.model_copy(
        update={"behind": 2}
    )
    seen = []
    poller = UpdatePoller(
        session_registry, 60, on_status=lambda s, st: seen.append((s, st))
    )

    assert await poller.poll_once() == 1

    assert poller.last_status[str(sync_session.path)].behind == 2
    assert seen[0][0] is sync_session


async def test_poll_once_skips_busy_and_resolving(
    session_registry, sync_session, fake_backend, tmp_path
):
    other = session_registry.get(tmp_path / "other.md")
    other.set_phase(SyncPhase.AWAITING_RESOLUTION)
    poller = UpdatePoller(session_registry, 60)

    async with sync_session.lock:
        assert await poller.poll_once() == 0

    assert fake_backend.calls == []
    assert poller.last_status == {}


async def test_poll_once_tolerates_fetch_failure(
    session_registry, sync_session, fake_backend
):
    fake_backend.fail("fetch", "fatal: unable to access remote")
    poller = UpdatePoller(session_registry, 60)

    assert await poller.poll_once() == 0


async def test_start_and_stop(session_registry, sync_session, fake_backend):
    poller = UpdatePoller(session_registry, 0.01)

    poller.start()
    assert poller.running
    for _ in range(50):
        if fake_backend.count("fetch"):
            break
        await asyncio.sleep(0.01)
    await poller.stop()

    assert not poller.running
    assert fake_backend.count("fetch") >= 1


async def test_callback_error_does_not_stop_loop(
    session_registry, sync_session, fake_backend
):
    def _explode(session, status):
        raise RuntimeError("listener bug")

    poller = UpdatePoller(session_registry, 0.01, on_status=_explode)
    poller.start()
    for _ in range(50):
        if fake_backend.count("fetch") >= 2:
            break
        await asyncio.sleep(0.01)

    assert poller.running
    await poller.stop()
    assert fake_backend.count("fetch") >= 2


async def test_stop_without_start(session_registry):
    await UpdatePoller(session_registry, 60).stop()
