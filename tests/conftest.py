"""Shared pytest fixtures for git-doc-sync tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from dotenv import load_dotenv

from git_doc_sync.config import Config
from git_doc_sync.core.backend import (
    BranchList,
    DiffHunk,
    RepoStatus,
    classify_backend_error,
)
from git_doc_sync.core.errors import BackendError, BackendErrorKind
from git_doc_sync.sync.session import SessionRegistry, SyncSession

load_dotenv()

CONFLICT_TEXT = (
    "Before\n"
    "<<<<<<< HEAD\n"
    "local\n"
    "=======\n"
    "remote\n"
    ">>>>>>> origin/main\n"
    "After"
)


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that drive a real git executable",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a real git executable"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# Fake backend
# ---------------------------------------------------------------------------


class FakeBackend:
    """In-memory ``VersionControlBackend`` that records every call.

    ``fail(op, message)`` queues a ``BackendError`` for the next call of
    *op*; ``on(op, fn)`` runs *fn* (e.g. writing conflict markers into the
    tracked file) each time *op* is called, before any queued failure is
    raised.
    """

    def __init__(self, working_dir: Path):
        self.working_dir = working_dir
        self.calls: list[str] = []
        self.commits: list[str] = []
        self.added: list[str] = []
        self.stash_result = True
        self.repo = True
        self.repo_status = RepoStatus(
            current_branch="main",
            tracking_branch="origin/main",
        )
        self.branch_list = BranchList(all=["main", "draft"], current="main")
        self.diff_hunks: list[DiffHunk] = []
        self.diff_args: list[tuple[str, str]] = []
        self._errors: dict[str, list[BackendError]] = {}
        self._effects: dict[str, Callable[[], None]] = {}

    def fail(
        self,
        op: str,
        message: str,
        kind: BackendErrorKind | None = None,
    ) -> None:
        error = BackendError(
            kind or classify_backend_error(message, op), message, op
        )
        self._errors.setdefault(op, []).append(error)

    def on(self, op: str, effect: Callable[[], None]) -> None:
        self._effects[op] = effect

    def count(self, op: str) -> int:
        return self.calls.count(op)

    async def _call(self, op: str) -> None:
        self.calls.append(op)
        effect = self._effects.get(op)
        if effect is not None:
            effect()
        queue = self._errors.get(op)
        if queue:
            raise queue.pop(0)

    async def is_repo(self) -> bool:
        await self._call("is_repo")
        return self.repo

    async def status(self) -> RepoStatus:
        await self._call("status")
        return self.repo_status

    async def fetch(self) -> None:
        await self._call("fetch")

    async def pull(self) -> None:
        await self._call("pull")

    async def push(self) -> None:
        await self._call("push")

    async def commit(self, message: str) -> None:
        await self._call("commit")
        self.commits.append(message)

    async def add(self, paths: list[str]) -> None:
        await self._call("add")
        self.added.extend(paths)

    async def add_all(self) -> None:
        await self._call("add_all")

    async def stash(self) -> bool:
        await self._call("stash")
        return self.stash_result

    async def stash_pop(self) -> None:
        await self._call("stash_pop")

    async def stash_drop(self) -> None:
        await self._call("stash_drop")

    async def checkout(self, branch: str) -> None:
        await self._call("checkout")
        self.branch_list = BranchList(
            all=self.branch_list.all, current=branch
        )

    async def branches(self) -> BranchList:
        await self._call("branches")
        return self.branch_list

    async def abort_merge(self) -> None:
        await self._call("abort_merge")

    async def diff(self, ref: str, path: str) -> list[DiffHunk]:
        await self._call("diff")
        self.diff_args.append((ref, path))
        return self.diff_hunks


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config():
    """A valid runtime Config with defaults."""
    return Config()


@pytest.fixture
def tracked_file(tmp_path):
    """A tracked document with clean content."""
    path = tmp_path / "draft.md"
    path.write_text("Before\nlocal\nAfter")
    return path


@pytest.fixture
def fake_backend(tmp_path):
    return FakeBackend(tmp_path.resolve())


@pytest.fixture
def session_registry(fake_backend):
    return SessionRegistry(backend_factory=lambda _dir: fake_backend)


@pytest.fixture
def sync_session(session_registry, tracked_file) -> SyncSession:
    return session_registry.get(tracked_file)


@pytest.fixture
def write_conflict(tracked_file):
    """Return a callable that writes CONFLICT_TEXT into the tracked file."""

    def _write() -> None:
        tracked_file.write_text(CONFLICT_TEXT)

    return _write


@pytest.fixture
def conflict_text():
    return CONFLICT_TEXT


@pytest.fixture
def tool_context(mock_config, session_registry):
    """SyncContext wired to the fake backend, with no merge service key."""
    from git_doc_sync.mcp.lifespan import SyncContext
    from git_doc_sync.sync.merge_service import MergeServiceClient
    from git_doc_sync.sync.poller import UpdatePoller

    return SyncContext(
        config=mock_config,
        sessions=session_registry,
        merge_client=MergeServiceClient(mock_config.merge_settings()),
        poller=UpdatePoller(session_registry, mock_config.poll_interval),
    )
