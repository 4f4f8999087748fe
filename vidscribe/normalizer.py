"""Converts raw backend output into canonical transcript segments."""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .models import TranscriptSegment

logger = logging.getLogger(__name__)

MAX_TOKENS_PER_SEGMENT = 10
SENTENCE_ENDINGS = ('.', '!', '?')


@dataclass(frozen=True)
class WordToken:
    """A recognised word with its start offset (seconds) and confidence."""
    text: str
    start_seconds: float
    confidence: float = 1.0


def group_tokens(
    tokens: Sequence[WordToken],
    base_offset: float = 0.0,
    max_tokens: int = MAX_TOKENS_PER_SEGMENT,
) -> List[TranscriptSegment]:
    """
    Groups word tokens into sentence-like segments.

    A segment starts at its first token's offset (plus ``base_offset``) and is
    closed once it holds ``max_tokens`` tokens, when a token ends a sentence,
    or at the last token. Its confidence is the mean of its tokens'.

    Every token lands in exactly one segment, in order. Segments whose joined
    text is blank are dropped.
    """
    segments: List[TranscriptSegment] = []
    words: List[str] = []
    confidence_total = 0.0
    segment_start = 0.0
    last_index = len(tokens) - 1

    for index, token in enumerate(tokens):
        if not words:
            segment_start = base_offset + token.start_seconds

        words.append(token.text)
        confidence_total += token.confidence
        count = len(words)

        ends_sentence = token.text.endswith(SENTENCE_ENDINGS)
        if count >= max_tokens or ends_sentence or index == last_index:
            text = " ".join(w for w in words if w).strip()
            average = confidence_total / count if count else 1.0
            if text:
                segments.append(TranscriptSegment(
                    text=text,
                    start_offset_seconds=segment_start,
                    confidence=average,
                ))
            words = []
            confidence_total = 0.0

    return segments


def tokens_from_cloud_words(words: Iterable[Mapping[str, Any]]) -> List[WordToken]:
    """Cloud word objects carry millisecond offsets (``start`` or ``start_ms``)."""
    tokens = []
    for word in words:
        start_ms = word.get('start', word.get('start_ms', 0))
        confidence = word.get('confidence')
        tokens.append(WordToken(
            text=str(word.get('text', '')).strip(),
            start_seconds=float(start_ms or 0) / 1000.0,
            confidence=float(confidence) if confidence is not None else 1.0,
        ))
    return tokens


def tokens_from_whisper_words(words: Iterable[Mapping[str, Any]]) -> List[WordToken]:
    """openai-whisper word dicts: ``word`` (leading space), ``start`` seconds, ``probability``."""
    tokens = []
    for word in words:
        probability = word.get('probability')
        tokens.append(WordToken(
            text=str(word.get('word', '')).strip(),
            start_seconds=float(word.get('start', 0.0)),
            confidence=float(probability) if probability is not None else 1.0,
        ))
    return tokens


def segments_from_whisper_cpp(payload: Optional[Mapping[str, Any]]) -> List[TranscriptSegment]:
    """
    Maps whisper.cpp JSON output to segments.

    Expected shape: ``{"transcription": [{"offsets": {"from": ms, "to": ms}, "text": ...}]}``.
    whisper.cpp reports no confidence, so every segment gets 1.0.
    """
    if not isinstance(payload, Mapping):
        logger.warning("whisper.cpp output is not a JSON object")
        return []
    entries = payload.get('transcription')
    if not isinstance(entries, list):
        logger.warning("whisper.cpp output has no 'transcription' list")
        return []

    segments = []
    for entry in entries:
        text = str(entry.get('text', '')).strip()
        if not text:
            continue
        offsets = entry.get('offsets') or {}
        from_ms = offsets.get('from', offsets.get('from_ms', 0))
        segments.append(TranscriptSegment(
            text=text,
            start_offset_seconds=float(from_ms or 0) / 1000.0,
            confidence=1.0,
        ))
    return segments
