"""Chunked on-device transcription using OpenAI's Whisper model."""

import logging
import math
import os
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import torch
import whisper
from whisper.audio import SAMPLE_RATE
from whisper.tokenizer import LANGUAGES

from ..exceptions import BackendUnavailableError, TranscriptionFailedError
from ..models import TranscriptSegment
from ..normalizer import group_tokens, tokens_from_whisper_words
from .base import ProgressCallback, ProgressReporter, TranscriptionBackend

logger = logging.getLogger(__name__)

CHUNK_DURATION_SECONDS = 60.0


def calculate_chunks(duration: float, chunk_duration: float = CHUNK_DURATION_SECONDS) -> List[Tuple[float, float]]:
    """
    Splits ``duration`` seconds into (start, length) windows of ``chunk_duration``.

    The last window takes the remainder, so lengths always sum to ``duration``.
    """
    if duration <= 0:
        return []
    count = math.ceil(duration / chunk_duration)
    chunks = []
    for index in range(count):
        start = index * chunk_duration
        chunks.append((start, min(chunk_duration, duration - start)))
    return chunks


class OnDeviceBackend(TranscriptionBackend):
    """Runs a Whisper model in-process, one 60 second window at a time."""

    name = "on_device"
    display_name = "On-device Whisper (offline)"
    preparing_message = "Preparing audio for on-device Whisper..."

    def __init__(
        self,
        model_name: str = "base",
        device: str = "cuda",
        fp16: bool = True,
        chunk_duration: float = CHUNK_DURATION_SECONDS,
        sample_rate: int = SAMPLE_RATE,
        model: Any = None,
        audio_loader: Optional[Callable[[str], Sequence[float]]] = None,
    ):
        """
        Initializes the OnDeviceBackend.

        Args:
            model_name: The name of the Whisper model to use (e.g., "base", "medium").
            device: The device to run the model on ("cuda" or "cpu").
            fp16: Whether to use float16 precision (faster on compatible GPUs).
            chunk_duration: Window length in seconds.
            sample_rate: Samples per second returned by ``audio_loader``.
            model: A preloaded Whisper model; loaded lazily when None.
            audio_loader: Decodes a file to mono samples; defaults to ``whisper.load_audio``.

        Raises:
            ValueError: If the specified device is invalid.
        """
        self.model_name = model_name
        self.device = device
        self.chunk_duration = chunk_duration
        self.sample_rate = sample_rate
        self._model = model
        self._audio_loader = audio_loader or whisper.load_audio

        if self.device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA device requested but not available. Falling back to CPU.")
            self.device = "cpu"
        elif self.device not in ["cuda", "cpu"]:
             raise ValueError(f"Invalid device specified: {self.device}. Choose 'cuda' or 'cpu'.")
        # FP16 only works on CUDA
        self.fp16 = fp16 and self.device == "cuda"

    def supported_languages(self) -> Dict[str, str]:
        return {code: name.title() for code, name in LANGUAGES.items()}

    def _load_model(self) -> Any:
        if self._model is None:
            logger.info(f"Loading Whisper model '{self.model_name}' on device '{self.device}' (FP16: {self.fp16})")
            try:
                self._model = whisper.load_model(self.model_name, device=self.device)
            except Exception as e:
                logger.error(f"Failed to load Whisper model '{self.model_name}': {e}", exc_info=True)
                raise BackendUnavailableError(
                    f"Speech recogniser is not available: could not load Whisper model '{self.model_name}' ({e})"
                ) from e
        return self._model

    def transcribe(
        self,
        audio_path: str,
        language: str,
        on_progress: Optional[ProgressCallback] = None,
        credentials: Optional[str] = None,
    ) -> List[TranscriptSegment]:
        reporter = ProgressReporter(on_progress)
        logger.info(f"Starting on-device transcription for: {audio_path}")
        if not os.path.exists(audio_path):
             raise FileNotFoundError(f"Audio file not found: {audio_path}")

        decode_language = None if language in (None, "", "auto") else language
        if decode_language is not None and decode_language not in self.supported_languages():
            raise BackendUnavailableError(
                f"Speech recogniser is not available for language '{language}'. "
                "Please select a different language."
            )

        model = self._load_model()
        samples = self._audio_loader(audio_path)
        duration = len(samples) / float(self.sample_rate)
        chunks = calculate_chunks(duration, self.chunk_duration)
        logger.info(f"Audio duration {duration:.2f}s split into {len(chunks)} chunk(s)")

        all_segments: List[TranscriptSegment] = []
        for index, (start, length) in enumerate(chunks):
            reporter.report(index / len(chunks), f"Transcribing chunk {index + 1} of {len(chunks)}...")
            first = int(round(start * self.sample_rate))
            last = int(round((start + length) * self.sample_rate))
            window = samples[first:last]
            all_segments.extend(self._transcribe_window(model, window, start, decode_language))

        reporter.report(1.0, f"Transcription complete! ({len(all_segments)} segments)")
        logger.info(f"On-device transcription produced {len(all_segments)} segments")
        return all_segments

    def _transcribe_window(self, model: Any, window: Sequence[float], start: float,
                           language: Optional[str]) -> List[TranscriptSegment]:
        try:
            result = model.transcribe(
                window,
                language=language,
                word_timestamps=True,
                fp16=self.fp16,
                verbose=None,
            )
        except Exception as e:
            logger.error(f"Whisper failed on window starting at {start:.1f}s: {e}", exc_info=True)
            raise TranscriptionFailedError(f"Whisper transcription failed at {start:.1f}s: {e}") from e

        words: List[Dict[str, Any]] = []
        for seg_data in result.get('segments', []):
            words.extend(seg_data.get('words') or [])

        if words:
            return group_tokens(tokens_from_whisper_words(words), base_offset=start)

        # No word timing; keep the flat text instead of dropping the window
        text = (result.get('text') or '').strip()
        if text:
            return [TranscriptSegment(text=text, start_offset_seconds=start, confidence=1.0)]
        return []
