"""Orchestrates the extract -> transcribe -> normalise pipeline."""

import logging
import threading
import time
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Optional

from .audio_extractor import AudioExtractor, ExtractedAudio
from .backends.base import ProgressCallback, TranscriptionBackend
from .exceptions import ConfigurationError, TranscriptionInProgressError
from .models import TranscriptionRecord
from .utils import format_duration, remove_file_quietly

if TYPE_CHECKING:
    from .credentials import CredentialStore

logger = logging.getLogger(__name__)


class TranscriptionState(Enum):
    IDLE = "idle"
    EXTRACTING_AUDIO = "extracting_audio"
    TRANSCRIBING = "transcribing"
    COMPLETED = "completed"
    FAILED = "failed"


class TranscriptionOrchestrator:
    """
    Manages the end-to-end transcription of a video file.

    The backend is picked from the ``provider`` config value. Backend progress
    is forwarded unchanged. Only one transcription may run per instance.
    """

    def __init__(
        self,
        config: dict,
        audio_extractor: AudioExtractor,
        backends: Mapping[str, TranscriptionBackend],
        credential_store: Optional["CredentialStore"] = None,
    ):
        """
        Initializes the TranscriptionOrchestrator.

        Args:
            config: A dictionary containing configuration settings.
            audio_extractor: An instance of AudioExtractor.
            backends: Backends keyed by provider name.
            credential_store: Source of the API key for backends that need one.
        """
        self.config = config
        self.audio_extractor = audio_extractor
        self.backends = dict(backends)
        self.credential_store = credential_store

        self.state = TranscriptionState.IDLE
        self.progress = 0.0
        self.status_message = ""
        self.last_record: Optional[TranscriptionRecord] = None
        self._lock = threading.Lock()

    @property
    def is_transcribing(self) -> bool:
        return self.state in (TranscriptionState.EXTRACTING_AUDIO, TranscriptionState.TRANSCRIBING)

    def select_backend(self, provider: Optional[str] = None) -> TranscriptionBackend:
        provider = provider or self.config.get('provider')
        try:
            return self.backends[provider]
        except KeyError:
            raise ConfigurationError(
                f"Transcription provider '{provider}' is not available. "
                f"Configured providers: {', '.join(sorted(self.backends)) or 'none'}"
            ) from None

    def _set_status(self, progress: float, message: str, on_progress: Optional[ProgressCallback]) -> None:
        self.progress = progress
        self.status_message = message
        if on_progress is not None:
            try:
                on_progress(progress, message)
            except Exception as e:
                logger.warning(f"Progress callback raised {e!r}; ignoring")

    def transcribe(
        self,
        video_path: str,
        on_progress: Optional[ProgressCallback] = None,
        language: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> TranscriptionRecord:
        """
        Transcribes a video with the configured backend.

        Args:
            video_path: Path to the input video file.
            on_progress: Receives (fraction, message) updates.
            language: Language code; defaults to config['language'].
            provider: Overrides config['provider'] for this call.

        Returns:
            The completed TranscriptionRecord.

        Raises:
            TranscriptionInProgressError: If another transcription is running on this instance.
            VidScribeError: Any extraction or backend failure, unchanged.
            FileNotFoundError: If the input video is not found.
        """
        if not self._lock.acquire(blocking=False):
            raise TranscriptionInProgressError("A transcription is already in progress.")
        try:
            return self._run(video_path, on_progress, language, provider)
        finally:
            self._lock.release()

    def _run(self, video_path: str, on_progress: Optional[ProgressCallback],
             language: Optional[str], provider: Optional[str]) -> TranscriptionRecord:
        started = time.time()
        extracted: Optional[ExtractedAudio] = None
        language = language or self.config.get('language', 'en')
        logger.info(f"--- Starting transcription for: {video_path} ---")

        try:
            backend = self.select_backend(provider)
            credentials = None
            if backend.requires_credentials and self.credential_store is not None:
                credentials = self.credential_store.get()

            self.state = TranscriptionState.EXTRACTING_AUDIO
            self._set_status(0.0, "Extracting audio from video...", on_progress)
            extracted = self.audio_extractor.extract_audio(video_path)
            logger.info(f"Audio extracted to: {extracted.audio_path} "
                        f"(duration {format_duration(extracted.duration_seconds)})")

            self.state = TranscriptionState.TRANSCRIBING
            self._set_status(0.0, backend.preparing_message, on_progress)

            def forward(fraction: float, message: str) -> None:
                self._set_status(fraction, message, on_progress)

            segments = backend.transcribe(extracted.audio_path, language, forward, credentials)

            record = TranscriptionRecord.create(
                video_path=video_path,
                segments=segments,
                video_duration=extracted.duration_seconds,
                transcription_duration=time.time() - started,
                provider=backend.name,
            )
            self.last_record = record
            self.state = TranscriptionState.COMPLETED
            self._set_status(1.0, f"Transcription complete! ({len(segments)} segments)", on_progress)
            logger.info(f"--- Transcription completed in {time.time() - started:.2f} seconds "
                        f"with {len(segments)} segments ---")
        except Exception as e:
            self.state = TranscriptionState.FAILED
            self.progress = 0.0
            self.status_message = f"Error: {e}"
            logger.error(f"Transcription failed for {video_path}: {e}")
            raise
        finally:
            if extracted is not None:
                remove_file_quietly(extracted.audio_path)

        return record
