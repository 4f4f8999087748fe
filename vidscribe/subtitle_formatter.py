"""Handles formatting transcriptions into subtitle (SRT) and plain-text files."""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Sequence

from .models import TranscriptionRecord, TranscriptSegment
from .exceptions import FormattingError
from .utils import format_duration, format_time_srt, parse_time_srt

logger = logging.getLogger(__name__)

DEFAULT_CHAR_LIMIT = 42
DEFAULT_LAST_DURATION = 2.0

_SRT_TIMING = re.compile(r"^(\d+:\d{2}:\d{2},\d{3})\s*-->\s*(\d+:\d{2}:\d{2},\d{3})$")


@dataclass(frozen=True)
class SubtitleEntry:
    """One SRT block read back from a file."""
    index: int
    start: float
    end: float
    text: str


def wrap_text(text: str, max_chars: int) -> List[str]:
    """
    Word-wraps text to ``max_chars`` per line.

    A single word longer than the limit is kept whole on its own line.
    """
    if len(text) <= max_chars:
        return [text]

    lines: List[str] = []
    current_line = ""
    for word in text.split():
        potential_line = f"{current_line} {word}" if current_line else word
        if len(potential_line) <= max_chars:
            current_line = potential_line
            continue
        if current_line:
            lines.append(current_line)
        if len(word) > max_chars:
            lines.append(word)
            current_line = ""
        else:
            current_line = word
    if current_line:
        lines.append(current_line)
    return lines


class TranscriptFormatter(ABC):
    """Abstract base class for transcript formatters."""

    extension: str = ""

    @abstractmethod
    def render(self, record: TranscriptionRecord) -> str:
        """
        Formats the transcription record as file content.

        Args:
            record: The transcription to format.

        Returns:
            The formatted document.
        """

    def write(self, record: TranscriptionRecord, output_path: str) -> None:
        """
        Renders the record and writes it to ``output_path``.

        Raises:
            FormattingError: If formatting or writing fails.
        """
        content = self.render(record)
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(content)
        except IOError as e:
            logger.error(f"Failed to write {self.extension} file to {output_path}: {e}", exc_info=True)
            raise FormattingError(f"Could not write {self.extension} file: {e}") from e
        logger.info(f"Wrote {len(record.segments)} segments to {output_path}")


class SRTFormatter(TranscriptFormatter):
    """Formats subtitles into the SRT (SubRip Text) format."""

    extension = "srt"

    def __init__(self, char_limit: int = DEFAULT_CHAR_LIMIT, default_duration: float = DEFAULT_LAST_DURATION):
        """
        Args:
            char_limit: Maximum characters per subtitle line.
            default_duration: Display time of the last entry, which has no successor.
        """
        self.char_limit = char_limit
        self.default_duration = default_duration

    def render(self, record: TranscriptionRecord) -> str:
        return self.render_segments(record.segments)

    def render_segments(self, segments: Sequence[TranscriptSegment]) -> str:
        """Each entry ends where the next segment starts."""
        blocks = []
        for index, segment in enumerate(segments):
            start = segment.start_offset_seconds
            if index < len(segments) - 1:
                end = segments[index + 1].start_offset_seconds
            else:
                end = start + self.default_duration
            lines = wrap_text(segment.text, self.char_limit)
            blocks.append(
                f"{index + 1}\n"
                f"{format_time_srt(start)} --> {format_time_srt(end)}\n"
                + "\n".join(lines)
            )
        return "\n\n".join(blocks).strip()


class PlainTextFormatter(TranscriptFormatter):
    """Header followed by one ``[timestamp] text`` line per segment."""

    extension = "txt"

    def __init__(self, title: str = "Video Transcription"):
        self.title = title

    def render(self, record: TranscriptionRecord) -> str:
        lines = [
            self.title,
            f"Video: {record.video_name}",
            f"Created: {record.created_at.strftime('%Y-%m-%d %H:%M')}",
            f"Duration: {format_duration(record.video_duration)}",
            "",
            "=" * 60,
            "",
        ]
        lines.extend(f"[{segment.formatted_timestamp}] {segment.text}" for segment in record.segments)
        return "\n".join(lines) + "\n"


def get_formatter(output_format: str, char_limit: int = DEFAULT_CHAR_LIMIT) -> TranscriptFormatter:
    output_format = output_format.lower()
    if output_format == 'srt':
        return SRTFormatter(char_limit=char_limit)
    if output_format == 'txt':
        return PlainTextFormatter()
    raise FormattingError(f"Unsupported output format '{output_format}'.")


def parse_srt(content: str) -> List[SubtitleEntry]:
    """
    Reads SRT content back into entries.

    Raises:
        FormattingError: If a block has a non-numeric index or no valid timing line.
    """
    entries = []
    for block in re.split(r"\n\s*\n", content.strip().replace("\r\n", "\n")):
        lines = [line for line in block.split("\n") if line.strip()]
        if not lines:
            continue
        if len(lines) < 2:
            raise FormattingError(f"Malformed SRT block: {block!r}")
        match = _SRT_TIMING.match(lines[1].strip())
        if not match:
            raise FormattingError(f"Malformed SRT timing line: {lines[1]!r}")
        try:
            index = int(lines[0].strip())
        except ValueError:
            raise FormattingError(f"Malformed SRT index line: {lines[0]!r}") from None
        entries.append(SubtitleEntry(
            index=index,
            start=parse_time_srt(match.group(1)),
            end=parse_time_srt(match.group(2)),
            text="\n".join(lines[2:]),
        ))
    return entries
