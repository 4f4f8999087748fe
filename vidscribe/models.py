"""Data models for VidScribe."""

import hashlib
import os
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from .exceptions import ConfigurationError
from .utils import format_timestamp

DEFAULT_MODEL_BASE_URL = "https://huggingface.co/ggerganov/whisper.cpp/resolve/main"


def _new_segment_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TranscriptSegment:
    """One timestamped unit of transcribed text with a confidence score."""
    text: str
    start_offset_seconds: float
    confidence: float = 1.0
    id: str = field(default_factory=_new_segment_id)

    @property
    def formatted_timestamp(self) -> str:
        return format_timestamp(self.start_offset_seconds)

    def with_text(self, text: str) -> "TranscriptSegment":
        return replace(self, text=text)

    def with_start(self, start_offset_seconds: float) -> "TranscriptSegment":
        return replace(self, start_offset_seconds=start_offset_seconds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "start_offset_seconds": self.start_offset_seconds,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptSegment":
        return cls(
            id=str(data.get("id") or _new_segment_id()),
            text=str(data["text"]),
            start_offset_seconds=float(data["start_offset_seconds"]),
            confidence=float(data.get("confidence", 1.0)),
        )


def compute_fingerprint(video_path: str, segments: Sequence[TranscriptSegment], video_duration: float) -> str:
    """
    Derives the duplicate-detection fingerprint of a transcription.

    Combines the video file name, segment count, video duration and the
    first/last segment content. The last segment only contributes when it is
    distinct from the first.
    """
    parts: List[str] = [
        os.path.basename(video_path),
        str(len(segments)),
        repr(float(video_duration)),
    ]
    if segments:
        first = segments[0]
        parts.extend([first.text, repr(float(first.start_offset_seconds))])
    if len(segments) > 1:
        last = segments[-1]
        parts.extend([last.text, repr(float(last.start_offset_seconds))])
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class TranscriptionRecord:
    """A completed transcription. Immutable; superseded by a new record, never mutated."""
    video_path: str
    segments: Tuple[TranscriptSegment, ...]
    created_at: datetime
    video_duration: float
    transcription_duration: Optional[float]
    fingerprint: str
    provider: Optional[str] = None

    @classmethod
    def create(
        cls,
        video_path: str,
        segments: Sequence[TranscriptSegment],
        video_duration: float,
        transcription_duration: Optional[float] = None,
        provider: Optional[str] = None,
    ) -> "TranscriptionRecord":
        segments = tuple(segments)
        return cls(
            video_path=video_path,
            segments=segments,
            created_at=datetime.now(timezone.utc),
            video_duration=video_duration,
            transcription_duration=transcription_duration,
            fingerprint=compute_fingerprint(video_path, segments, video_duration),
            provider=provider,
        )

    @property
    def video_name(self) -> str:
        return os.path.basename(self.video_path)

    @property
    def formatted_transcription_duration(self) -> Optional[str]:
        if self.transcription_duration is None:
            return None
        minutes = int(self.transcription_duration) // 60
        seconds = int(self.transcription_duration) % 60
        if minutes > 0:
            return f"{minutes}min {seconds}sec"
        return f"{seconds}sec"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "video_path": self.video_path,
            "segments": [segment.to_dict() for segment in self.segments],
            "created_at": self.created_at.isoformat(),
            "video_duration": self.video_duration,
            "transcription_duration": self.transcription_duration,
            "fingerprint": self.fingerprint,
            "provider": self.provider,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptionRecord":
        segments = tuple(TranscriptSegment.from_dict(item) for item in data.get("segments", []))
        video_path = str(data["video_path"])
        video_duration = float(data.get("video_duration", 0.0))
        transcription_duration = data.get("transcription_duration")
        return cls(
            video_path=video_path,
            segments=segments,
            created_at=datetime.fromisoformat(data["created_at"]),
            video_duration=video_duration,
            transcription_duration=float(transcription_duration) if transcription_duration is not None else None,
            # Older documents may predate fingerprints
            fingerprint=data.get("fingerprint") or compute_fingerprint(video_path, segments, video_duration),
            provider=data.get("provider"),
        )


class BackendProgress(NamedTuple):
    """Fractional progress in [0, 1] plus a human-readable status."""
    fraction: float
    message: str


@dataclass(frozen=True)
class ModelAsset:
    """A downloadable whisper.cpp model variant."""
    name: str
    display_name: str
    size_estimate: str
    approximate_bytes: int
    strict_quality: bool = False
    base_url: str = DEFAULT_MODEL_BASE_URL

    @property
    def file_name(self) -> str:
        return f"ggml-{self.name}.bin"

    @property
    def download_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.file_name}"


# Strict decoding thresholds only for the two smallest variants; larger
# models tend to hang with them.
MODEL_CATALOG: Dict[str, ModelAsset] = {
    asset.name: asset
    for asset in (
        ModelAsset("tiny", "Tiny (75MB, Fast, ~85% accuracy)", "75 MB", 75 * 1024 ** 2, strict_quality=True),
        ModelAsset("base", "Base (142MB, Fast, ~88% accuracy)", "142 MB", 142 * 1024 ** 2, strict_quality=True),
        ModelAsset("small", "Small (466MB, Medium, ~92% accuracy)", "466 MB", 466 * 1024 ** 2),
        ModelAsset("medium", "Medium (1.5GB, Slower, ~94% accuracy) - Recommended", "1.5 GB", 1536 * 1024 ** 2),
        ModelAsset("large-v3", "Large (3GB, Slowest, ~95% accuracy)", "3.0 GB", 3072 * 1024 ** 2),
    )
}


def get_model_asset(name: str, base_url: Optional[str] = None) -> ModelAsset:
    """Looks up a catalog model, optionally re-pointing it at another download host."""
    try:
        asset = MODEL_CATALOG[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown whisper model '{name}'. Choose one of: {', '.join(MODEL_CATALOG)}"
        ) from None
    if base_url:
        asset = replace(asset, base_url=base_url)
    return asset
