"""AssemblyAI cloud transcription: upload, submit, then poll."""

import logging
import os
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import requests

from ..exceptions import (
    MissingAPIKeyError,
    NoTranscriptDataError,
    NotAuthorizedError,
    PollingFailedError,
    SubmissionFailedError,
    TranscriptionFailedError,
    TranscriptionTimeoutError,
    UploadFailedError,
)
from ..models import TranscriptSegment
from ..normalizer import group_tokens, tokens_from_cloud_words
from .base import ProgressCallback, ProgressReporter, TranscriptionBackend

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.assemblyai.com/v2"

# Polls used to scale the liveness estimate from 0.5 toward 0.9
PROGRESS_SCALE_POLLS = 60
MAX_PROCESSING_PROGRESS = 0.95

SUPPORTED_LANGUAGES: Dict[str, str] = {
    "en": "English (Global)",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "hi": "Hindi",
    "ja": "Japanese",
    "zh": "Chinese",
    "fi": "Finnish",
    "ko": "Korean",
    "pl": "Polish",
    "ru": "Russian",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "vi": "Vietnamese",
    "lt": "Lithuanian",
}


class CloudJobState(Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CloudBackend(TranscriptionBackend):
    """Speech-to-text backend driven through the AssemblyAI REST API."""

    name = "assemblyai"
    display_name = "AssemblyAI (cloud)"
    preparing_message = "Preparing audio for AssemblyAI..."
    requires_credentials = True

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        poll_interval: float = 3.0,
        max_poll_attempts: int = 600,
        request_timeout: float = 120.0,
        *,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip('/')
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.request_timeout = request_timeout
        self._session = session or requests.Session()
        self._sleep = sleep
        self.state = CloudJobState.IDLE
        self.poll_count = 0

    def supported_languages(self) -> Dict[str, str]:
        return dict(SUPPORTED_LANGUAGES)

    def transcribe(
        self,
        audio_path: str,
        language: str,
        on_progress: Optional[ProgressCallback] = None,
        credentials: Optional[str] = None,
    ) -> List[TranscriptSegment]:
        if not credentials:
            raise MissingAPIKeyError()
        if not os.path.exists(audio_path):
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        reporter = ProgressReporter(on_progress)
        self.state = CloudJobState.IDLE
        self.poll_count = 0

        try:
            self.state = CloudJobState.UPLOADING
            reporter.report(0.1, "Uploading audio to AssemblyAI...")
            upload_url = self._upload(audio_path, credentials)

            reporter.report(0.3, "Starting transcription...")
            transcript_id = self._submit(upload_url, language, credentials)
            self.state = CloudJobState.SUBMITTED

            reporter.report(0.5, "Processing transcription...")
            segments = self._poll(transcript_id, credentials, reporter)
        except Exception:
            self.state = CloudJobState.FAILED
            raise

        self.state = CloudJobState.COMPLETED
        reporter.report(1.0, "Conversion complete!")
        logger.info(f"AssemblyAI transcription {transcript_id} produced {len(segments)} segments")
        return segments

    def _headers(self, api_key: str, content_type: Optional[str] = None) -> Dict[str, str]:
        headers = {"authorization": api_key}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    @staticmethod
    def _check_authorized(response: requests.Response, step: str) -> None:
        if response.status_code in (401, 403):
            raise NotAuthorizedError(
                f"AssemblyAI rejected the API key during {step} (HTTP {response.status_code}). "
                "Please check your API key."
            )

    def _upload(self, audio_path: str, api_key: str) -> str:
        logger.info(f"Uploading {audio_path} to AssemblyAI")
        try:
            with open(audio_path, 'rb') as f:
                response = self._session.post(
                    f"{self.base_url}/upload",
                    headers=self._headers(api_key, "application/octet-stream"),
                    data=f.read(),
                    timeout=self.request_timeout,
                )
        except requests.RequestException as e:
            logger.error(f"AssemblyAI upload request failed: {e}")
            raise UploadFailedError("Failed to upload audio file to AssemblyAI. Check your internet connection.") from e

        self._check_authorized(response, "upload")
        if response.status_code != 200:
            raise UploadFailedError(f"Failed to upload audio file to AssemblyAI (HTTP {response.status_code}).")
        try:
            return str(response.json()["upload_url"])
        except (ValueError, KeyError, TypeError) as e:
            raise UploadFailedError("AssemblyAI upload response did not contain an upload URL.") from e

    def _submit(self, upload_url: str, language: str, api_key: str) -> str:
        payload = {"audio_url": upload_url, "language_code": language}
        try:
            response = self._session.post(
                f"{self.base_url}/transcript",
                headers=self._headers(api_key, "application/json"),
                json=payload,
                timeout=self.request_timeout,
            )
        except requests.RequestException as e:
            logger.error(f"AssemblyAI submit request failed: {e}")
            raise SubmissionFailedError("Transcription request failed. Check your internet connection.") from e

        self._check_authorized(response, "submission")
        if response.status_code != 200:
            raise SubmissionFailedError(
                f"Transcription request failed (HTTP {response.status_code}). "
                "Please check your API key and language and try again."
            )
        try:
            return str(response.json()["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise SubmissionFailedError("AssemblyAI did not return a transcript id.") from e

    def _poll(self, transcript_id: str, api_key: str, reporter: ProgressReporter) -> List[TranscriptSegment]:
        poll_url = f"{self.base_url}/transcript/{transcript_id}"
        while True:
            try:
                response = self._session.get(poll_url, headers=self._headers(api_key), timeout=self.request_timeout)
            except requests.RequestException as e:
                logger.error(f"AssemblyAI poll request failed for {transcript_id}: {e}")
                raise PollingFailedError("Failed to retrieve transcription results.") from e

            self._check_authorized(response, "polling")
            if response.status_code != 200:
                raise PollingFailedError(f"Failed to retrieve transcription results (HTTP {response.status_code}).")
            try:
                result: Dict[str, Any] = response.json()
            except ValueError as e:
                raise PollingFailedError("AssemblyAI returned an unreadable status payload.") from e

            status = str(result.get("status", ""))
            if status == "completed":
                words = result.get("words")
                if words is None:
                    raise NoTranscriptDataError()
                return group_tokens(tokens_from_cloud_words(words))
            if status in ("error", "failed"):
                detail = result.get("error") or "unknown error"
                raise TranscriptionFailedError(f"AssemblyAI transcription failed: {detail}")

            self.state = CloudJobState.PROCESSING
            self.poll_count += 1
            if self.poll_count >= self.max_poll_attempts:
                raise TranscriptionTimeoutError(
                    f"AssemblyAI transcription did not finish after {self.poll_count} status checks."
                )
            estimate = min(0.5 + self.poll_count / PROGRESS_SCALE_POLLS * 0.4, MAX_PROCESSING_PROGRESS)
            label = status if status in ("queued", "processing") else "working"
            reporter.report(estimate, f"Processing: {label}... ({int(estimate * 100)}%)")
            logger.debug(f"Transcript {transcript_id} status '{status}', poll #{self.poll_count}")
            self._sleep(self.poll_interval)
