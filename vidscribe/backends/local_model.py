"""Local whisper.cpp transcription through the ``whisper-cli`` executable."""

import json
import logging
import os
import shutil
import subprocess
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from ..audio_extractor import AudioExtractor
from ..exceptions import (
    ModelNotDownloadedError,
    TranscriptionFailedError,
    TranscriptionTimeoutError,
    WhisperNotInstalledError,
)
from ..model_assets import ModelAssetManager
from ..models import ModelAsset, TranscriptSegment
from ..normalizer import segments_from_whisper_cpp
from ..utils import ensure_dir_exists, remove_file_quietly
from .base import ProgressCallback, ProgressReporter, TranscriptionBackend

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 600.0
TICK_INTERVAL_SECONDS = 0.5
TICK_INCREMENT = 0.018  # reaches 0.95 after roughly 47 seconds
TICK_START = 0.10
TICK_CEILING = 0.95

SUPPORTED_LANGUAGES: Dict[str, str] = {
    "auto": "Auto-detect",
    "lt": "Lithuanian",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "pl": "Polish",
    "ru": "Russian",
    "uk": "Ukrainian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "ar": "Arabic",
    "hi": "Hindi",
    "tr": "Turkish",
    "vi": "Vietnamese",
    "fi": "Finnish",
    "sv": "Swedish",
    "no": "Norwegian",
    "da": "Danish",
    "cs": "Czech",
    "sk": "Slovak",
    "ro": "Romanian",
    "bg": "Bulgarian",
    "hr": "Croatian",
    "sr": "Serbian",
    "sl": "Slovenian",
    "et": "Estonian",
    "lv": "Latvian",
}


def optimal_thread_count(cpu_count: Optional[int] = None) -> int:
    cores = cpu_count if cpu_count is not None else (os.cpu_count() or 1)
    return max(4, min(cores, 10))


class LocalModelBackend(TranscriptionBackend):
    """Runs whisper.cpp as a subprocess while estimating progress on a timer."""

    name = "whisper_cpp"
    display_name = "Whisper (whisper.cpp, offline)"
    preparing_message = "Preparing audio for Whisper..."

    def __init__(
        self,
        asset_manager: ModelAssetManager,
        asset: ModelAsset,
        audio_extractor: AudioExtractor,
        temp_dir: str,
        whisper_cpp_path: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        *,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        self.asset_manager = asset_manager
        self.asset = asset
        self.audio_extractor = audio_extractor
        self.temp_dir = temp_dir
        self.whisper_cpp_path = whisper_cpp_path
        self.timeout_seconds = timeout_seconds
        self.tick_interval = tick_interval
        self._popen = popen

    def supported_languages(self) -> Dict[str, str]:
        return dict(SUPPORTED_LANGUAGES)

    def _resolve_binary(self) -> str:
        if self.whisper_cpp_path:
            if os.path.isfile(self.whisper_cpp_path):
                return self.whisper_cpp_path
            raise WhisperNotInstalledError(f"whisper-cli not found at configured path: {self.whisper_cpp_path}")
        for candidate in ("whisper-cli", "whisper-cpp"):
            resolved = shutil.which(candidate)
            if resolved:
                return resolved
        raise WhisperNotInstalledError()

    def build_command(self, binary: str, model_path: str, wav_path: str, output_stem: str, language: str) -> List[str]:
        command = [
            binary,
            "-m", model_path,
            "-f", wav_path,
            "-oj",
            "-of", output_stem,
            "-t", str(optimal_thread_count()),
            "-tp", "0.0",
            "-sns",
        ]
        if self.asset.strict_quality:
            command.extend(["-et", "3.0", "-lpt", "-0.5"])
            logger.info(f"Using strict quality parameters for {self.asset.name} model")
        else:
            logger.info(f"Using relaxed parameters for {self.asset.name} model")
        if language and language != "auto":
            command.extend(["-l", language])
        return command

    def transcribe(
        self,
        audio_path: str,
        language: str,
        on_progress: Optional[ProgressCallback] = None,
        credentials: Optional[str] = None,
    ) -> List[TranscriptSegment]:
        if not self.asset_manager.is_downloaded(self.asset):
            raise ModelNotDownloadedError(
                f"Whisper model '{self.asset.name}' is not downloaded. "
                f"Run 'vidscribe models download {self.asset.name}' first."
            )
        binary = self._resolve_binary()
        if not os.path.exists(audio_path):
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        reporter = ProgressReporter(on_progress)
        reporter.report(0.0, "Preparing audio...")

        ensure_dir_exists(self.temp_dir)
        job_id = uuid.uuid4().hex
        wav_path = os.path.join(self.temp_dir, f"{job_id}.wav")
        output_stem = os.path.join(self.temp_dir, job_id)
        json_path = f"{output_stem}.json"

        try:
            reporter.report(0.05, "Converting audio for Whisper...")
            self.audio_extractor.convert_to_pcm_wav(audio_path, wav_path)

            reporter.report(TICK_START, "Starting Whisper transcription...")
            command = self.build_command(binary, self.asset_manager.model_path(self.asset), wav_path,
                                         output_stem, language)
            self._run_with_progress(command, reporter)

            reporter.report(0.96, "Parsing results...")
            segments = self._read_output(json_path)
        finally:
            remove_file_quietly(wav_path)
            remove_file_quietly(json_path)

        if not segments:
            logger.warning("whisper.cpp returned no segments (no speech detected or empty output)")
        reporter.report(1.0, f"Transcription complete! Found {len(segments)} segments.")
        return segments

    def _run_with_progress(self, command: List[str], reporter: ProgressReporter) -> None:
        """
        Starts whisper.cpp and ticks synthetic progress until it exits.

        A waiter thread blocks on the process while this thread ticks. On
        timeout the process is killed. Both activities finish before return.
        """
        logger.info(f"Running whisper-cli: {' '.join(command)}")
        try:
            process = self._popen(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            logger.error(f"Could not start whisper-cli: {e}", exc_info=True)
            raise TranscriptionFailedError(f"Could not start whisper-cli: {e}") from e

        finished = threading.Event()
        outputs: Dict[str, Any] = {}

        def wait_for_exit() -> None:
            try:
                outputs['stdout'], outputs['stderr'] = process.communicate()
            finally:
                finished.set()

        waiter = threading.Thread(target=wait_for_exit, name="whisper-cli-waiter", daemon=True)
        waiter.start()

        started = time.monotonic()
        progress = TICK_START
        timed_out = False
        ticks = 0
        try:
            while not finished.wait(self.tick_interval):
                elapsed = time.monotonic() - started
                if elapsed > self.timeout_seconds:
                    logger.error(f"whisper-cli exceeded {self.timeout_seconds:.0f}s; terminating")
                    timed_out = True
                    break
                progress = min(progress + TICK_INCREMENT, TICK_CEILING)
                reporter.report(progress, f"Transcribing with Whisper... ({int(progress * 100)}%)")
                ticks += 1
                if ticks % 10 == 0:
                    logger.debug(f"whisper-cli still running after {elapsed:.0f}s")
        finally:
            # Covers timeouts and interrupts alike; the child never outlives this call
            if not finished.is_set() and process.poll() is None:
                logger.warning("Killing whisper-cli before it finished")
                process.kill()
            waiter.join()

        if timed_out:
            raise TranscriptionTimeoutError(
                f"Whisper transcription timed out after {self.timeout_seconds / 60:g} minutes. "
                "Try a smaller model or shorter video."
            )

        stderr = outputs.get('stderr') or b""
        if isinstance(stderr, bytes):
            stderr = stderr.decode('utf-8', errors='replace')
        if process.returncode != 0:
            logger.error(f"whisper-cli failed with exit code {process.returncode}: {stderr[-2000:]}")
            raise TranscriptionFailedError(
                f"Whisper transcription failed with exit code {process.returncode}: {stderr[-500:].strip()}"
            )
        logger.info(f"whisper-cli finished in {time.monotonic() - started:.1f}s")

    @staticmethod
    def _read_output(json_path: str) -> List[TranscriptSegment]:
        if not os.path.exists(json_path):
            logger.error(f"JSON output not found at: {json_path}")
            raise TranscriptionFailedError(f"Whisper did not write its JSON output ({json_path}).")
        try:
            with open(json_path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not parse whisper.cpp output {json_path}: {e}")
            raise TranscriptionFailedError(f"Could not parse Whisper output: {e}") from e
        return segments_from_whisper_cpp(payload)
