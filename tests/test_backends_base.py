from __future__ import annotations

import logging
from pathlib import Path
from unittest import mock

import pytest

from vidscribe.backends.base import ProgressReporter
from vidscribe.backends.cloud import CloudBackend, CloudJobState

BASE_URL = "https://api.example.test/v2"

COMPLETED = {
    "status": "completed",
    "words": [{"text": "Hello.", "start": 0, "end": 500, "confidence": 0.9}],
}


def _response(payload) -> mock.Mock:
    response = mock.Mock()
    response.status_code = 200
    response.json.return_value = payload
    return response


def _upload_and_submit():
    return [
        _response({"upload_url": "https://cdn.example.test/abc"}),
        _response({"id": "tx-1"}),
    ]


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    path = tmp_path / "audio.m4a"
    path.write_bytes(b"fake audio")
    return path


def test_progress_never_goes_backwards() -> None:
    seen = []
    reporter = ProgressReporter(lambda f, m: seen.append(f))

    reporter.report(0.5, "halfway")
    reporter.report(0.3, "stale estimate")

    assert reporter.last.fraction == 0.5
    assert reporter.last.message == "stale estimate"
    assert seen == [0.5, 0.5]


def test_progress_is_clamped() -> None:
    reporter = ProgressReporter()

    assert reporter.report(-1.0, "before start").fraction == 0.0
    assert reporter.report(1.5, "overshoot").fraction == 1.0


def test_failing_callback_is_logged_and_ignored(caplog) -> None:
    def broken(fraction, message):
        raise RuntimeError("display gone")

    reporter = ProgressReporter(broken)

    with caplog.at_level(logging.WARNING, logger="vidscribe.backends.base"):
        progress = reporter.report(0.4, "working")

    assert progress.fraction == 0.4
    assert "display gone" in caplog.text


def test_cloud_transcription_survives_failing_callback(audio_file: Path) -> None:
    session = mock.Mock()
    session.post.side_effect = _upload_and_submit()
    session.get.side_effect = [_response({"status": "processing"}), _response(COMPLETED)]
    backend = CloudBackend(BASE_URL, session=session, sleep=mock.Mock())

    def broken(fraction, message):
        raise RuntimeError("display gone")

    segments = backend.transcribe(str(audio_file), "en", broken, credentials="key")

    assert [s.text for s in segments] == ["Hello."]
    assert backend.state is CloudJobState.COMPLETED


def test_repeated_cloud_transcriptions_start_fresh(audio_file: Path) -> None:
    session = mock.Mock()
    session.post.side_effect = _upload_and_submit() + _upload_and_submit()
    session.get.side_effect = [
        _response({"status": "queued"}),
        _response(COMPLETED),
        _response(COMPLETED),
    ]
    backend = CloudBackend(BASE_URL, session=session, sleep=mock.Mock())

    backend.transcribe(str(audio_file), "en", credentials="key")
    assert backend.poll_count == 1
    assert backend.state is CloudJobState.COMPLETED

    updates = []
    backend.transcribe(str(audio_file), "en", lambda f, m: updates.append(f), credentials="key")

    assert backend.poll_count == 0
    assert backend.state is CloudJobState.COMPLETED
    assert updates[0] == 0.1
    assert updates == sorted(updates)
