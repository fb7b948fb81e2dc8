"""Tests for conflict-marker parsing, section resolution and rebuild."""

from __future__ import annotations

import pytest

from git_doc_sync.core.errors import SectionNotFoundError
from git_doc_sync.sync.models import ConflictDocument, ConflictSection
from git_doc_sync.sync.parser import (
    conflict_block,
    has_conflict_markers,
    keep_both,
    parse,
    rebuild,
    resolve_section,
)

SCENARIO_A = (
    "Before\n"
    "<<<<<<< HEAD\n"
    "local\n"
    "=======\n"
    "remote\n"
    ">>>>>>> origin/main\n"
    "After"
)

TWO_SECTIONS = (
    "# Title\n"
    "<<<<<<< HEAD\n"
    "first local\n"
    "=======\n"
    "first remote\n"
    ">>>>>>> origin/main\n"
    "middle\n"
    "<<<<<<< HEAD\n"
    "second local a\n"
    "second local b\n"
    "=======\n"
    "second remote\n"
    ">>>>>>> origin/main\n"
    "end\n"
)


def _resolve_all(document: ConflictDocument, side: str) -> ConflictDocument:
    for section in document.sections:
        text = section.local_text if side == "local" else section.remote_text
        document = resolve_section(document, section.id, text)
    return document


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------


class TestParse:
    def test_single_section(self):
        doc = parse(SCENARIO_A, "/notes/draft.md")

        assert doc.path == "/notes/draft.md"
        assert len(doc.sections) == 1
        section = doc.sections[0]
        assert section.id == 0
        assert section.local_text == "local"
        assert section.remote_text == "remote"
        assert section.resolved_text is None
        assert doc.literal_segments == ["Before", "After"]
        assert doc.resolved is False

    def test_multiline_sides_and_dense_ids(self):
        doc = parse(TWO_SECTIONS, "f.md")

        assert [s.id for s in doc.sections] == [0, 1]
        assert doc.sections[1].local_text == "second local a\nsecond local b"
        assert doc.literal_segments == ["# Title", "middle", "end\n"]

    def test_no_markers(self):
        text = "plain text\nwith two lines\n"
        doc = parse(text, "f.md")

        assert doc.sections == []
        assert doc.literal_segments == [text]
        assert doc.resolved is True

    def test_empty_input(self):
        doc = parse("", "f.md")

        assert doc.sections == []
        assert doc.literal_segments == [""]

    def test_conflict_at_file_boundaries(self):
        text = "<<<<<<< HEAD\na\n=======\nb\n>>>>>>> theirs"
        doc = parse(text, "f.md")

        assert len(doc.sections) == 1
        assert doc.literal_segments == ["", ""]
        assert doc.segment_line_counts == [0, 0]

    def test_empty_local_side(self):
        text = "x\n<<<<<<< HEAD\n=======\nremote only\n>>>>>>> theirs\ny"
        doc = parse(text, "f.md")

        assert doc.sections[0].local_text == ""
        assert doc.sections[0].remote_text == "remote only"

    def test_dangling_start_marker_closed_at_eof(self):
        text = "intro\n<<<<<<< HEAD\nlocal\n=======\nremote"
        doc = parse(text, "f.md")

        assert len(doc.sections) == 1
        assert doc.sections[0].local_text == "local"
        assert doc.sections[0].remote_text == "remote"
        assert doc.literal_segments == ["intro", ""]

    def test_end_marker_without_separator(self):
        text = "<<<<<<< HEAD\nonly local\n>>>>>>> theirs\ntail"
        doc = parse(text, "f.md")

        assert doc.sections[0].local_text == "only local"
        assert doc.sections[0].remote_text == ""
        assert doc.literal_segments == ["", "tail"]

    def test_stray_end_marker_outside_is_literal(self):
        text = "a\n>>>>>>> stray\nb"
        doc = parse(text, "f.md")

        assert doc.sections == []
        assert doc.literal_segments == [text]

    def test_separator_in_remote_is_content(self):
        text = "<<<<<<< HEAD\nl\n=======\nr1\n=======\nr2\n>>>>>>> theirs"
        doc = parse(text, "f.md")

        assert doc.sections[0].remote_text == "r1\n=======\nr2"

    @pytest.mark.parametrize(
        "text",
        [
            SCENARIO_A,
            TWO_SECTIONS,
            "",
            "no markers",
            "<<<<<<< HEAD\ndangling",
            "a\n<<<<<<< x\n=======\n>>>>>>> y\n<<<<<<< x\n=======\n>>>>>>> y",
        ],
    )
    def test_segment_count_invariant(self, text):
        doc = parse(text, "f.md")
        assert len(doc.literal_segments) == len(doc.sections) + 1


# ---------------------------------------------------------------------------
# has_conflict_markers
# ---------------------------------------------------------------------------


class TestHasConflictMarkers:
    def test_full_markers(self):
        assert has_conflict_markers(SCENARIO_A) is True

    def test_no_markers(self):
        assert has_conflict_markers("plain text") is False

    def test_partial_markers_without_end(self):
        text = "a\n<<<<<<< HEAD\nlocal\n=======\nremote\n"
        assert has_conflict_markers(text) is False

    def test_substring_check_only(self):
        # Markers anywhere in the text count, even out of order
        text = ">>>>>>> b\n=======\n<<<<<<< a"
        assert has_conflict_markers(text) is True


# ---------------------------------------------------------------------------
# resolve_section
# ---------------------------------------------------------------------------


class TestResolveSection:
    def test_returns_new_document(self):
        doc = parse(SCENARIO_A, "f.md")
        resolved = resolve_section(doc, 0, "merged")

        assert resolved is not doc
        assert doc.sections[0].resolved_text is None
        assert resolved.sections[0].resolved_text == "merged"
        assert resolved.resolved is True

    def test_other_sections_untouched(self):
        doc = parse(TWO_SECTIONS, "f.md")
        resolved = resolve_section(doc, 1, "x")

        assert resolved.sections[0] == doc.sections[0]
        assert resolved.unresolved_ids == [0]

    def test_unknown_id_raises(self):
        doc = parse(SCENARIO_A, "f.md")
        with pytest.raises(SectionNotFoundError) as exc_info:
            resolve_section(doc, 5, "x")
        assert exc_info.value.section_id == 5

    def test_not_found_is_key_error(self):
        doc = parse(SCENARIO_A, "f.md")
        with pytest.raises(KeyError):
            resolve_section(doc, -1, "x")

    def test_idempotent(self):
        doc = parse(TWO_SECTIONS, "f.md")
        once = resolve_section(doc, 0, "X")
        twice = resolve_section(once, 0, "X")
        assert once == twice

    def test_overwrite_keeps_completeness(self):
        doc = _resolve_all(parse(TWO_SECTIONS, "f.md"), "local")
        assert doc.resolved is True

        doc = resolve_section(doc, 0, "changed my mind")
        assert doc.resolved is True
        assert doc.sections[0].resolved_text == "changed my mind"


# ---------------------------------------------------------------------------
# rebuild
# ---------------------------------------------------------------------------


class TestRebuild:
    def test_keep_both_scenario(self):
        doc = parse(SCENARIO_A, "f.md")
        section = doc.sections[0]
        assert keep_both(section) == "local\n\nremote"

        doc = resolve_section(doc, 0, keep_both(section))
        assert rebuild(doc) == "Before\nlocal\n\nremote\nAfter"

    def test_round_trip_local(self):
        doc = _resolve_all(parse(TWO_SECTIONS, "f.md"), "local")
        assert rebuild(doc) == (
            "# Title\nfirst local\nmiddle\nsecond local a\nsecond local b\nend\n"
        )

    def test_round_trip_remote(self):
        doc = _resolve_all(parse(TWO_SECTIONS, "f.md"), "remote")
        assert rebuild(doc) == "# Title\nfirst remote\nmiddle\nsecond remote\nend\n"

    def test_round_trip_at_boundaries(self):
        text = "<<<<<<< HEAD\na\n=======\nb\n>>>>>>> theirs"
        assert rebuild(_resolve_all(parse(text, "f.md"), "local")) == "a"
        assert rebuild(_resolve_all(parse(text, "f.md"), "remote")) == "b"

    def test_round_trip_adjacent_blocks(self):
        text = (
            "<<<<<<< HEAD\na\n=======\nb\n>>>>>>> theirs\n"
            "<<<<<<< HEAD\nc\n=======\nd\n>>>>>>> theirs\n"
        )
        doc = _resolve_all(parse(text, "f.md"), "local")
        assert rebuild(doc) == "a\nc\n"

    def test_round_trip_empty_side(self):
        text = "x\n<<<<<<< HEAD\n=======\nremote only\n>>>>>>> theirs\ny"
        assert rebuild(_resolve_all(parse(text, "f.md"), "local")) == "x\ny"
        assert (
            rebuild(_resolve_all(parse(text, "f.md"), "remote"))
            == "x\nremote only\ny"
        )

    def test_blank_line_literal_preserved(self):
        text = "a\n\n<<<<<<< HEAD\nl\n=======\nr\n>>>>>>> theirs\n\nb"
        doc = _resolve_all(parse(text, "f.md"), "local")
        assert rebuild(doc) == "a\n\nl\n\nb"

    def test_no_conflict_rebuild_is_identity(self):
        text = "unchanged\ntext\n"
        assert rebuild(parse(text, "f.md")) == text

    def test_partial_resolution_reemits_markers(self):
        doc = parse(TWO_SECTIONS, "f.md")
        doc = resolve_section(doc, 0, "first merged")

        assert doc.resolved is False
        assert rebuild(doc) == (
            "# Title\n"
            "first merged\n"
            "middle\n"
            "<<<<<<< LOCAL\n"
            "second local a\n"
            "second local b\n"
            "=======\n"
            "second remote\n"
            ">>>>>>> REMOTE\n"
            "end\n"
        )

    def test_unresolved_rebuild_reparses_to_same_sides(self):
        doc = parse(SCENARIO_A, "f.md")
        reparsed = parse(rebuild(doc), "f.md")

        assert reparsed.sections[0].local_text == "local"
        assert reparsed.sections[0].remote_text == "remote"
        assert reparsed.literal_segments == doc.literal_segments

    def test_manually_built_document(self):
        doc = ConflictDocument(
            path="f.md",
            sections=[
                ConflictSection(id=0, local_text="l", remote_text="r")
            ],
            literal_segments=["head", "tail"],
        )
        doc = resolve_section(doc, 0, "merged")
        assert rebuild(doc) == "head\nmerged\ntail"


def test_conflict_block_omits_empty_sides():
    section = ConflictSection(id=0, local_text="", remote_text="r")
    assert conflict_block(section) == (
        "<<<<<<< LOCAL\n=======\nr\n>>>>>>> REMOTE"
    )
