"""Conflict-marker parser and document rebuilder.

Parses git conflict markers into a ``ConflictDocument`` and rebuilds file
text from resolved (or still unresolved) sections.

Marker format, each on its own line::

    <<<<<<< HEAD
    local lines
    =======
    remote lines
    >>>>>>> origin/main

Key design choices:

* Parsing is line based with three states (outside / local / remote).
  Marker labels (``HEAD``, ``origin/main``) are not retained; unresolved
  sections are re-emitted with the fixed labels ``LOCAL`` and ``REMOTE``.
* A start marker without a matching end marker is closed at end of input
  with whatever lines were collected, so ``literal_segments`` always has
  exactly one more entry than ``sections``.
* Rebuilding drops literal runs that spanned zero source lines and empty
  resolutions, so replacing each block by one of its sides reproduces the
  source exactly.
"""

from __future__ import annotations

import logging
from enum import Enum

from ..core.errors import SectionNotFoundError
from .models import ConflictDocument, ConflictSection

logger = logging.getLogger(__name__)

CONFLICT_START = "<<<<<<< "
CONFLICT_SEPARATOR = "======="
CONFLICT_END = ">>>>>>> "

REBUILD_LOCAL_LABEL = "LOCAL"
REBUILD_REMOTE_LABEL = "REMOTE"

KEEP_BOTH_SEPARATOR = "\n\n"


class _State(Enum):
    OUTSIDE = "outside"
    IN_LOCAL = "in_local"
    IN_REMOTE = "in_remote"


def has_conflict_markers(text: str) -> bool:
    """Cheap pre-check: all three marker strings appear somewhere in *text*.

    This is a substring test, not structural validation.
    """
    return (
        CONFLICT_START in text
        and CONFLICT_SEPARATOR in text
        and CONFLICT_END in text
    )


def parse(raw_text: str, path: str) -> ConflictDocument:
    """Parse conflict markers in *raw_text* into a ``ConflictDocument``.

    Args:
        raw_text: File content, possibly containing conflict markers.
        path: The tracked file the content belongs to.

    Returns:
        A document whose sections are all unresolved.
    """
    segments: list[str] = []
    line_counts: list[int] = []
    sections: list[ConflictSection] = []

    literal: list[str] = []
    local: list[str] = []
    remote: list[str] = []
    state = _State.OUTSIDE

    def _close_section() -> None:
        sections.append(
            ConflictSection(
                id=len(sections),
                local_text="\n".join(local),
                remote_text="\n".join(remote),
            )
        )

    for line in raw_text.split("\n"):
        if state is _State.OUTSIDE:
            if line.startswith(CONFLICT_START):
                segments.append("\n".join(literal))
                line_counts.append(len(literal))
                literal = []
                local = []
                remote = []
                state = _State.IN_LOCAL
            else:
                literal.append(line)
        elif line.startswith(CONFLICT_END):
            _close_section()
            state = _State.OUTSIDE
        elif state is _State.IN_LOCAL:
            if line == CONFLICT_SEPARATOR:
                state = _State.IN_REMOTE
            else:
                local.append(line)
        else:
            remote.append(line)

    if state is not _State.OUTSIDE:
        logger.warning(
            "Unterminated conflict block in %s; closing at end of input",
            path,
        )
        _close_section()

    segments.append("\n".join(literal))
    line_counts.append(len(literal))

    return ConflictDocument(
        path=path,
        sections=sections,
        literal_segments=segments,
        segment_line_counts=line_counts,
    )


def resolve_section(
    document: ConflictDocument, section_id: int, resolved_text: str
) -> ConflictDocument:
    """Return a copy of *document* with one section resolved.

    Other sections are untouched; ``resolved`` is derived from the new
    section list.

    Raises:
        SectionNotFoundError: If *section_id* is not in the document.
    """
    if document.section(section_id) is None:
        raise SectionNotFoundError(section_id)

    sections = [
        s.model_copy(update={"resolved_text": resolved_text})
        if s.id == section_id
        else s
        for s in document.sections
    ]
    return document.model_copy(update={"sections": sections})


def keep_both(section: ConflictSection) -> str:
    """Concatenate local then remote text, separated by a blank line."""
    return section.local_text + KEEP_BOTH_SEPARATOR + section.remote_text


def conflict_block(section: ConflictSection) -> str:
    """Re-emit an unresolved section with ``LOCAL``/``REMOTE`` labels."""
    lines = [f"{CONFLICT_START}{REBUILD_LOCAL_LABEL}"]
    if section.local_text:
        lines.append(section.local_text)
    lines.append(CONFLICT_SEPARATOR)
    if section.remote_text:
        lines.append(section.remote_text)
    lines.append(f"{CONFLICT_END}{REBUILD_REMOTE_LABEL}")
    return "\n".join(lines)


def rebuild(document: ConflictDocument) -> str:
    """Rebuild file text from *document*.

    Interleaves literal segments with each section's resolved text, or a
    re-emitted conflict block for sections that are still unresolved,
    joining all parts with ``\\n``.
    """
    counts = document.segment_line_counts
    parts: list[str] = []

    for i, segment in enumerate(document.literal_segments):
        if segment or counts is None or counts[i] > 0:
            parts.append(segment)

        if i < len(document.sections):
            section = document.sections[i]
            if section.resolved_text is None:
                parts.append(conflict_block(section))
            elif section.resolved_text:
                parts.append(section.resolved_text)

    return "\n".join(parts)
