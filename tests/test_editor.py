from __future__ import annotations

import pytest

from vidscribe.editor import TranscriptEditor, find_match_spans, search_segments
from vidscribe.exceptions import EditError
from vidscribe.models import TranscriptSegment


@pytest.fixture
def segments():
    return [
        TranscriptSegment("Good morning everyone.", 0.0, 0.9, id="a"),
        TranscriptSegment("Today we talk about rivers.", 4.0, 0.7, id="b"),
        TranscriptSegment("Rivers carry water.", 9.5, 0.8, id="c"),
    ]


def test_editor_works_on_a_copy(segments) -> None:
    editor = TranscriptEditor(segments)
    editor.delete(["a"])

    assert len(segments) == 3
    assert len(editor) == 2


def test_merge_joins_in_sequence_order(segments) -> None:
    editor = TranscriptEditor(segments)

    merged = editor.merge(["c", "b"])

    assert merged.text == "Today we talk about rivers. Rivers carry water."
    assert merged.start_offset_seconds == 4.0
    assert merged.confidence == pytest.approx(0.75)
    assert merged.id not in {"a", "b", "c"}
    assert [s.id for s in editor.segments] == ["a", merged.id]


def test_merge_needs_two_segments(segments) -> None:
    editor = TranscriptEditor(segments)

    with pytest.raises(EditError):
        editor.merge(["a"])
    with pytest.raises(EditError):
        editor.merge(["a", "zzz"])


def test_split_at_word_midpoint(segments) -> None:
    editor = TranscriptEditor(segments)

    first, second = editor.split("b")

    assert first.text == "Today we"
    assert second.text == "talk about rivers."
    assert first.start_offset_seconds == 4.0
    assert second.start_offset_seconds == 6.0
    assert first.confidence == second.confidence == 0.7
    assert [s.text for s in editor.segments][1:3] == ["Today we", "talk about rivers."]
    assert len(editor) == 4


def test_split_single_word_is_rejected() -> None:
    editor = TranscriptEditor([TranscriptSegment("Hello", 0.0, id="x")])

    with pytest.raises(EditError):
        editor.split("x")


def test_retime_accepts_timestamp_strings(segments) -> None:
    editor = TranscriptEditor(segments)

    assert editor.retime("c", "00:12.250").start_offset_seconds == pytest.approx(12.25)
    assert editor.retime("c", "01:00:01,5").start_offset_seconds == pytest.approx(3601.5)
    assert editor.retime("c", 2.0).start_offset_seconds == 2.0
    assert not editor.is_chronological()


@pytest.mark.parametrize("value", ["soon", "12", -1.0])
def test_retime_rejects_bad_values(segments, value) -> None:
    editor = TranscriptEditor(segments)

    with pytest.raises(EditError):
        editor.retime("a", value)


def test_update_text_and_delete(segments) -> None:
    editor = TranscriptEditor(segments)

    updated = editor.update_text("a", "  Good afternoon everyone.  ")
    removed = editor.delete(["b", "c", "unknown"])

    assert updated.id == "a"
    assert updated.text == "Good afternoon everyone."
    assert removed == 2
    assert editor.segments == [updated]
    with pytest.raises(EditError):
        editor.update_text("a", "   ")


def test_search_is_case_insensitive(segments) -> None:
    matches = search_segments(segments, "RIVERS")

    assert [index for index, _ in matches] == [1, 2]
    assert search_segments(segments, "") == []
    assert TranscriptEditor(segments).search("water")[0][1].id == "c"


def test_find_match_spans() -> None:
    assert find_match_spans("Rivers and rivers", "rivers") == [(0, 6), (11, 17)]
    assert find_match_spans("aaaa", "aa") == [(0, 2), (2, 4)]
    assert find_match_spans("text", "") == []
