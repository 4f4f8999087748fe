"""Handles audio extraction from video files using ffmpeg."""

import ffmpeg
import os
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from .exceptions import AudioConversionFailedError, ExportFailedError, NoAudioTrackError
from .utils import ensure_dir_exists, remove_file_quietly

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractedAudio:
    """Temporary audio file produced from a video. The caller deletes it."""
    audio_path: str
    duration_seconds: float


class AudioExtractor:
    """Extracts the audio track from video files."""

    def __init__(self, temp_dir: str, ffmpeg_path: Optional[str] = None, ffprobe_path: Optional[str] = None):
        """
        Initializes the AudioExtractor.

        Args:
            temp_dir: Directory that receives the uniquely named temporary audio files.
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
            ffprobe_path: Optional path to the ffprobe executable.
        """
        self.temp_dir = temp_dir
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        self.ffprobe_cmd = ffprobe_path or 'ffprobe'
        logger.info(f"Using ffmpeg command: {self.ffmpeg_cmd}")

    def _probe(self, media_path: str) -> dict:
        try:
            return ffmpeg.probe(media_path, cmd=self.ffprobe_cmd)
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffprobe failed for {media_path}: {stderr_output}")
            raise ExportFailedError(f"Could not read media file {media_path}: {stderr_output}") from e

    @staticmethod
    def _duration_from_probe(probe: dict) -> float:
        try:
            return float(probe.get('format', {}).get('duration', 0.0))
        except (TypeError, ValueError):
            return 0.0

    def probe_duration(self, media_path: str) -> float:
        """Returns the container duration in seconds (0.0 when unknown)."""
        return self._duration_from_probe(self._probe(media_path))

    def extract_audio(self, video_filepath: str) -> ExtractedAudio:
        """
        Extracts the audio stream of a video into a temporary AAC (.m4a) file.

        The intermediate is general purpose; backends needing a specific
        sample format convert it themselves (see convert_to_pcm_wav).

        Args:
            video_filepath: Path to the input video file.

        Returns:
            The extracted audio path and the source duration.

        Raises:
            FileNotFoundError: If the input video file does not exist.
            NoAudioTrackError: If the video has no audio stream.
            ExportFailedError: If ffmpeg fails to produce the audio file.
            FileSystemError: If the temporary directory cannot be created/accessed.
        """
        logger.info(f"Starting audio extraction for: {video_filepath}")
        if not os.path.exists(video_filepath):
            raise FileNotFoundError(f"Input video file not found: {video_filepath}")

        probe = self._probe(video_filepath)
        audio_streams = [s for s in probe.get('streams', []) if s.get('codec_type') == 'audio']
        if not audio_streams:
            logger.error(f"No audio stream found in {video_filepath}")
            raise NoAudioTrackError()

        ensure_dir_exists(self.temp_dir)
        output_audio_path = os.path.join(self.temp_dir, f"{uuid.uuid4().hex}.m4a")
        logger.debug(f"Output audio path set to: {output_audio_path}")

        try:
            logger.info(f"Running ffmpeg to extract audio to {output_audio_path}...")
            (
                ffmpeg
                .input(video_filepath)
                .output(output_audio_path, vn=None, acodec='aac', ac=1, audio_bitrate='128k')
                .overwrite_output()
                .run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
            )
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffmpeg error during audio extraction for {video_filepath}: {stderr_output}")
            remove_file_quietly(output_audio_path)
            raise ExportFailedError(f"Failed to extract audio from video: {stderr_output}") from e

        if not os.path.exists(output_audio_path):
            raise ExportFailedError(f"ffmpeg did not produce audio file at {output_audio_path}")

        duration = self._duration_from_probe(probe)
        logger.info(f"Successfully extracted audio to: {output_audio_path} (duration {duration:.2f}s)")
        return ExtractedAudio(audio_path=output_audio_path, duration_seconds=duration)

    def convert_to_pcm_wav(self, audio_path: str, output_path: str) -> str:
        """
        Converts audio to 16kHz mono 16-bit PCM WAV, the input format of whisper.cpp.

        Raises:
            AudioConversionFailedError: If ffmpeg fails.
        """
        logger.info(f"Converting {audio_path} to 16kHz mono WAV at {output_path}")
        try:
            (
                ffmpeg
                .input(audio_path)
                .output(output_path, acodec='pcm_s16le', ar=16000, ac=1)
                .overwrite_output()
                .run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
            )
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffmpeg error during WAV conversion of {audio_path}: {stderr_output}")
            remove_file_quietly(output_path)
            raise AudioConversionFailedError(f"Failed to convert audio to WAV format for Whisper: {stderr_output}") from e
        return output_path
