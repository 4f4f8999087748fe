"""Common contract for the transcription backends."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from ..models import BackendProgress, TranscriptSegment

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]


class ProgressReporter:
    """
    Delivers progress updates for a single transcription call.

    Values are clamped to [0, 1] and never go backwards within the call.
    Exceptions raised by the observer are logged and dropped so a broken
    progress display cannot abort a transcription.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._callback = callback
        self._last = BackendProgress(0.0, "")

    @property
    def last(self) -> BackendProgress:
        return self._last

    def report(self, fraction: float, message: str) -> BackendProgress:
        fraction = max(self._last.fraction, min(1.0, max(0.0, float(fraction))))
        self._last = BackendProgress(fraction, message)
        if self._callback is not None:
            try:
                self._callback(fraction, message)
            except Exception as e:
                logger.warning(f"Progress callback raised {e!r}; ignoring", exc_info=True)
        return self._last


class TranscriptionBackend(ABC):
    """Abstract base class for transcription services."""

    name: str = ""
    display_name: str = ""
    preparing_message: str = "Preparing audio..."
    requires_credentials: bool = False

    @abstractmethod
    def supported_languages(self) -> Dict[str, str]:
        """Language codes accepted by ``transcribe`` mapped to display names."""

    @abstractmethod
    def transcribe(
        self,
        audio_path: str,
        language: str,
        on_progress: Optional[ProgressCallback] = None,
        credentials: Optional[str] = None,
    ) -> List[TranscriptSegment]:
        """
        Transcribes the given audio file.

        Args:
            audio_path: Path to the extracted audio file.
            language: Language code hint (``auto`` where the backend supports detection).
            on_progress: Receives (fraction, message) updates, non-decreasing within the call.
            credentials: Secret for backends that need one (API key).

        Returns:
            Segments ordered by start offset.

        Raises:
            TranscriptionError: If transcription fails.
            ConfigurationError: If the backend is unavailable, unauthorised or not configured.
            FileNotFoundError: If the audio file doesn't exist.
        """
