"""Version-control backend adapter that drives the ``git`` executable.

The orchestrator only ever talks to the ``VersionControlBackend``
protocol.  ``GitBackend`` implements it by shelling out to ``git`` in a
worker thread (via ``run_sync`` / ``run_sync_limited``) so the event loop
is never blocked.

Every failed invocation raises ``BackendError``.  The failure text is
classified exactly once, here, by ``classify_backend_error()``; callers
branch on ``BackendError.backend_kind`` rather than scanning git output
themselves.

Network operations (fetch, pull, push) run with interactive credential
prompting disabled, so a missing credential surfaces as an error instead
of a hung subprocess.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel

from ..config_schema import GitConfig
from .async_utils import run_sync, run_sync_limited
from .errors import BackendError, BackendErrorKind

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class RepoStatus(BaseModel):
    """Working tree and tracking-branch state.

    Attributes:
        current_branch: Checked-out branch, ``None`` when detached.
        tracking_branch: Upstream branch, ``None`` when not configured.
        changed_paths: Paths with staged, unstaged or untracked changes.
        unmerged_paths: Paths with unresolved merge conflicts.
        ahead: Commits on the local branch not on the upstream.
        behind: Commits on the upstream not on the local branch.
    """

    current_branch: str | None = None
    tracking_branch: str | None = None
    changed_paths: list[str] = []
    unmerged_paths: list[str] = []
    ahead: int = 0
    behind: int = 0

    model_config = {"frozen": True}

    @property
    def is_clean(self) -> bool:
        """True when there are no local changes at all."""
        return not self.changed_paths


class DiffHunk(BaseModel):
    """One ``@@`` hunk of a unified diff."""

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: list[str] = []

    model_config = {"frozen": True}


class BranchList(BaseModel):
    """Local branches and the one currently checked out."""

    all: list[str] = []
    current: str | None = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

_NO_MERGE_KEYWORDS = ("MERGE_HEAD missing", "There is no merge to abort")
# Lines git itself prints for a conflicted merge or stash pop. Matched
# case-sensitively so remote URLs and ref names cannot trigger them.
_CONFLICT_KEYWORDS = (
    "CONFLICT (",
    "Merge conflict in",
    "Automatic merge failed",
)
_DIVERGED_KEYWORDS = (
    "[rejected]",
    "non-fast-forward",
    "(fetch first)",
    "Updates were rejected",
    "branch is behind",
)


def classify_backend_error(
    message: str, command: str = ""
) -> BackendErrorKind:
    """Classify git failure text into a ``BackendErrorKind``.

    Matching is keyword based and git runs with English messages
    (``LC_MESSAGES=C``) so the keyword table stays valid across locales.
    Conflict lines win over divergence, except for ``push``, which never
    merges and is checked for divergence first.
    """
    if any(k in message for k in _NO_MERGE_KEYWORDS):
        return BackendErrorKind.NO_MERGE_IN_PROGRESS
    conflicted = any(k in message for k in _CONFLICT_KEYWORDS)
    diverged = any(k in message for k in _DIVERGED_KEYWORDS)
    if command == "push" and diverged:
        return BackendErrorKind.DIVERGED_REMOTE
    if conflicted:
        return BackendErrorKind.MERGE_CONFLICT
    if diverged:
        return BackendErrorKind.DIVERGED_REMOTE
    return BackendErrorKind.FAILED


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class VersionControlBackend(Protocol):
    """Operations the sync orchestrator needs from a version-control system."""

    working_dir: Path

    async def is_repo(self) -> bool: ...  # pragma: no cover

    async def status(self) -> RepoStatus: ...  # pragma: no cover

    async def fetch(self) -> None: ...  # pragma: no cover

    async def pull(self) -> None: ...  # pragma: no cover

    async def push(self) -> None: ...  # pragma: no cover

    async def commit(self, message: str) -> None: ...  # pragma: no cover

    async def add(self, paths: list[str]) -> None: ...  # pragma: no cover

    async def add_all(self) -> None: ...  # pragma: no cover

    async def stash(self) -> bool: ...  # pragma: no cover

    async def stash_pop(self) -> None: ...  # pragma: no cover

    async def stash_drop(self) -> None: ...  # pragma: no cover

    async def checkout(self, branch: str) -> None: ...  # pragma: no cover

    async def branches(self) -> BranchList: ...  # pragma: no cover

    async def abort_merge(self) -> None: ...  # pragma: no cover

    async def diff(
        self, ref: str, path: str
    ) -> list[DiffHunk]: ...  # pragma: no cover


# ---------------------------------------------------------------------------
# git implementation
# ---------------------------------------------------------------------------

_HUNK_HEADER = re.compile(
    r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@"
)


class GitBackend:
    """``VersionControlBackend`` implemented with the ``git`` executable.

    Args:
        working_dir: Directory git commands run in (the tracked file's
            parent directory).
        settings: Git section of the unified config; defaults apply
            when omitted.
    """

    def __init__(
        self, working_dir: Path, settings: GitConfig | None = None
    ) -> None:
        self.working_dir = working_dir
        self.settings = settings or GitConfig()

    # ------------------------------------------------------------------
    # Process plumbing
    # ------------------------------------------------------------------

    def _env(self, network: bool) -> dict[str, str]:
        env = dict(os.environ)
        env["LC_MESSAGES"] = "C"
        env["LANGUAGE"] = "C"
        if network:
            env["GIT_TERMINAL_PROMPT"] = "0"
            env.setdefault("GIT_SSH_COMMAND", "ssh -o BatchMode=yes")
        return env

    def run_git(self, args: list[str], network: bool = False) -> str:
        """Run ``git <args>`` synchronously and return its stdout.

        Raises:
            BackendError: If git is missing, times out, or exits non-zero.
        """
        timeout = (
            self.settings.network_timeout
            if network
            else self.settings.local_timeout
        )
        command = args[0] if args else ""
        logger.debug("git %s (cwd=%s)", " ".join(args), self.working_dir)
        try:
            result = subprocess.run(
                [self.settings.binary, *args],
                cwd=str(self.working_dir),
                env=self._env(network),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise BackendError(
                BackendErrorKind.UNAVAILABLE,
                f"git executable not found: {exc}",
                command,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise BackendError(
                BackendErrorKind.TIMEOUT,
                f"timed out after {timeout}s",
                command,
            ) from exc

        if result.returncode != 0:
            output = "\n".join(
                part for part in (result.stdout, result.stderr) if part
            )
            kind = classify_backend_error(output, command)
            logger.debug(
                "git %s exited %d (%s)",
                command,
                result.returncode,
                kind.value,
            )
            raise BackendError(kind, output, command)

        return result.stdout

    async def _local(self, *args: str) -> str:
        return await run_sync(self.run_git, list(args))

    async def _network(self, *args: str) -> str:
        return await run_sync_limited(self.run_git, list(args), True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def is_repo(self) -> bool:
        """Return ``True`` if the working directory is inside a work tree."""
        try:
            output = await self._local(
                "rev-parse", "--is-inside-work-tree"
            )
        except BackendError:
            return False
        return output.strip() == "true"

    async def status(self) -> RepoStatus:
        """Return branch, tracking and change information."""
        output = await self._local(
            "status", "--porcelain=v2", "--branch", "-z"
        )
        return parse_status(output)

    async def branches(self) -> BranchList:
        """List local branches."""
        output = await self._local(
            "branch", "--format=%(refname:short)"
        )
        names = [line for line in output.splitlines() if line]
        try:
            current = (
                await self._local("rev-parse", "--abbrev-ref", "HEAD")
            ).strip()
        except BackendError:
            current = ""
        return BranchList(
            all=names,
            current=current if current and current != "HEAD" else None,
        )

    async def diff(self, ref: str, path: str) -> list[DiffHunk]:
        """Return the hunks of ``git diff <ref> -- <path>``."""
        output = await self._local("diff", ref, "--", path)
        return parse_diff_hunks(output)

    # ------------------------------------------------------------------
    # Network operations
    # ------------------------------------------------------------------

    async def fetch(self) -> None:
        await self._network("fetch")

    async def pull(self) -> None:
        # Merge (never rebase) so conflicts surface as markers in the
        # working tree, and never open an editor for the merge commit.
        await self._network("pull", "--no-rebase", "--no-edit")

    async def push(self) -> None:
        await self._network("push")

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    async def commit(self, message: str) -> None:
        await self._local("commit", "-m", message)

    async def add(self, paths: list[str]) -> None:
        await self._local("add", "--", *paths)

    async def add_all(self) -> None:
        await self._local("add", "-A")

    async def stash(self) -> bool:
        """Stash local changes.

        Returns:
            ``True`` if a stash entry was created, ``False`` if there was
            nothing to stash.
        """
        output = await self._local("stash", "push")
        return "No local changes to save" not in output

    async def stash_pop(self) -> None:
        await self._local("stash", "pop")

    async def stash_drop(self) -> None:
        await self._local("stash", "drop")

    async def checkout(self, branch: str) -> None:
        await self._local("checkout", branch)

    async def abort_merge(self) -> None:
        """Abort an in-progress merge.

        Conflicts left by ``stash pop`` are not a merge, so when git
        reports there is nothing to abort the index and working tree are
        reset with ``reset --merge`` instead.  The stash entry is kept by
        git in that case, so local changes stay recoverable.
        """
        try:
            await self._local("merge", "--abort")
        except BackendError as exc:
            if exc.backend_kind != BackendErrorKind.NO_MERGE_IN_PROGRESS:
                raise
            logger.info(
                "No merge in progress in %s; resetting conflicted paths",
                self.working_dir,
            )
            await self._local("reset", "--merge")


# ---------------------------------------------------------------------------
# Output parsers
# ---------------------------------------------------------------------------


def parse_status(output: str) -> RepoStatus:
    """Parse ``git status --porcelain=v2 --branch -z`` output."""
    current: str | None = None
    tracking: str | None = None
    ahead = behind = 0
    changed: list[str] = []
    unmerged: list[str] = []

    records = output.split("\0")
    i = 0
    while i < len(records):
        record = records[i]
        i += 1
        if not record:
            continue
        if record.startswith("# branch.head "):
            head = record[len("# branch.head ") :]
            current = None if head == "(detached)" else head
        elif record.startswith("# branch.upstream "):
            tracking = record[len("# branch.upstream ") :]
        elif record.startswith("# branch.ab "):
            for token in record[len("# branch.ab ") :].split():
                if token.startswith("+"):
                    ahead = int(token[1:])
                elif token.startswith("-"):
                    behind = int(token[1:])
        elif record.startswith("1 "):
            changed.append(record.split(" ", 8)[8])
        elif record.startswith("2 "):
            changed.append(record.split(" ", 9)[9])
            # Renames carry the original path as the next record
            i += 1
        elif record.startswith("u "):
            path = record.split(" ", 10)[10]
            changed.append(path)
            unmerged.append(path)
        elif record.startswith("? "):
            changed.append(record[2:])

    return RepoStatus(
        current_branch=current,
        tracking_branch=tracking,
        changed_paths=changed,
        unmerged_paths=unmerged,
        ahead=ahead,
        behind=behind,
    )


def parse_diff_hunks(output: str) -> list[DiffHunk]:
    """Split unified diff output into ``DiffHunk`` objects."""
    hunks: list[DiffHunk] = []
    header: re.Match | None = None
    lines: list[str] = []

    def _flush() -> None:
        if header is None:
            return
        hunks.append(
            DiffHunk(
                old_start=int(header.group(1)),
                old_lines=int(header.group(2) or 1),
                new_start=int(header.group(3)),
                new_lines=int(header.group(4) or 1),
                lines=list(lines),
            )
        )

    for line in output.splitlines():
        match = _HUNK_HEADER.match(line)
        if match:
            _flush()
            header = match
            lines = []
        elif header is not None and line[:1] in (" ", "+", "-", "\\"):
            lines.append(line)
    _flush()
    return hunks
