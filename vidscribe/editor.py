"""In-memory editing and searching of transcript segments."""

import logging
from typing import Iterable, List, Sequence, Tuple, Union

from .exceptions import EditError
from .models import TranscriptSegment
from .utils import parse_timestamp

logger = logging.getLogger(__name__)

SPLIT_OFFSET_SECONDS = 2.0


def find_match_spans(text: str, query: str) -> List[Tuple[int, int]]:
    """Returns (start, end) of every case-insensitive, non-overlapping occurrence of ``query``."""
    if not query:
        return []
    haystack = text.lower()
    needle = query.lower()
    spans = []
    position = haystack.find(needle)
    while position != -1:
        spans.append((position, position + len(needle)))
        position = haystack.find(needle, position + len(needle))
    return spans


def search_segments(segments: Sequence[TranscriptSegment], query: str) -> List[Tuple[int, TranscriptSegment]]:
    """Case-insensitive substring search. An empty query matches nothing."""
    if not query:
        return []
    needle = query.lower()
    return [(index, segment) for index, segment in enumerate(segments) if needle in segment.text.lower()]


class TranscriptEditor:
    """
    Merge, split, retime, edit and delete operations over a segment list.

    Edited timestamps are not re-validated: a sequence may become
    non-chronological after edits, and order is never changed automatically.
    Use ``is_chronological`` to check.
    """

    def __init__(self, segments: Iterable[TranscriptSegment]):
        self._segments: List[TranscriptSegment] = list(segments)

    @property
    def segments(self) -> List[TranscriptSegment]:
        return list(self._segments)

    def __len__(self) -> int:
        return len(self._segments)

    def index_of(self, segment_id: str) -> int:
        for index, segment in enumerate(self._segments):
            if segment.id == segment_id:
                return index
        raise EditError(f"No segment with id {segment_id}")

    def merge(self, segment_ids: Iterable[str]) -> TranscriptSegment:
        """
        Merges the given segments into one at the position of the earliest.

        Text is joined in sequence order, the start comes from the first
        segment and the confidence is the average.

        Raises:
            EditError: If fewer than two segments are selected or an id is unknown.
        """
        indices = sorted({self.index_of(segment_id) for segment_id in segment_ids})
        if len(indices) < 2:
            raise EditError("Select at least two segments to merge")

        selected = [self._segments[i] for i in indices]
        merged = TranscriptSegment(
            text=" ".join(segment.text for segment in selected),
            start_offset_seconds=selected[0].start_offset_seconds,
            confidence=sum(segment.confidence for segment in selected) / len(selected),
        )
        for index in reversed(indices):
            del self._segments[index]
        self._segments.insert(indices[0], merged)
        logger.debug(f"Merged {len(indices)} segments into {merged.id}")
        return merged

    def split(self, segment_id: str,
              second_offset: float = SPLIT_OFFSET_SECONDS) -> Tuple[TranscriptSegment, TranscriptSegment]:
        """
        Splits a segment at its word midpoint.

        The second half is placed ``second_offset`` seconds after the original
        start. Both halves are new segments.

        Raises:
            EditError: If the segment has fewer than two words.
        """
        index = self.index_of(segment_id)
        original = self._segments[index]
        words = original.text.split()
        if len(words) < 2:
            raise EditError("Cannot split a segment with a single word")

        midpoint = len(words) // 2
        first = TranscriptSegment(
            text=" ".join(words[:midpoint]),
            start_offset_seconds=original.start_offset_seconds,
            confidence=original.confidence,
        )
        second = TranscriptSegment(
            text=" ".join(words[midpoint:]),
            start_offset_seconds=original.start_offset_seconds + second_offset,
            confidence=original.confidence,
        )
        self._segments[index:index + 1] = [first, second]
        return first, second

    def retime(self, segment_id: str, start: Union[float, str]) -> TranscriptSegment:
        """
        Sets a new start time, given in seconds or as MM:SS.mmm / HH:MM:SS.mmm.

        Raises:
            EditError: If the timestamp is unparsable or negative.
        """
        if isinstance(start, str):
            try:
                seconds = parse_timestamp(start)
            except ValueError as e:
                raise EditError(str(e)) from e
        else:
            seconds = float(start)
        if seconds < 0:
            raise EditError("Start time cannot be negative")

        index = self.index_of(segment_id)
        updated = self._segments[index].with_start(seconds)
        self._segments[index] = updated
        return updated

    def update_text(self, segment_id: str, text: str) -> TranscriptSegment:
        text = text.strip()
        if not text:
            raise EditError("Segment text cannot be empty; delete the segment instead")
        index = self.index_of(segment_id)
        updated = self._segments[index].with_text(text)
        self._segments[index] = updated
        return updated

    def delete(self, segment_ids: Iterable[str]) -> int:
        doomed = set(segment_ids)
        before = len(self._segments)
        self._segments = [segment for segment in self._segments if segment.id not in doomed]
        return before - len(self._segments)

    def search(self, query: str) -> List[Tuple[int, TranscriptSegment]]:
        return search_segments(self._segments, query)

    def is_chronological(self) -> bool:
        return all(
            earlier.start_offset_seconds <= later.start_offset_seconds
            for earlier, later in zip(self._segments, self._segments[1:])
        )
