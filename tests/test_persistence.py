from __future__ import annotations

import json
from pathlib import Path

import pytest

from vidscribe.exceptions import PersistenceError
from vidscribe.models import TranscriptionRecord, TranscriptSegment
from vidscribe.persistence import TranscriptStore


def _record(video: str = "/videos/interview.mov", text: str = "First answer.") -> TranscriptionRecord:
    segments = [TranscriptSegment(text, 0.0, 0.9), TranscriptSegment("Second answer.", 5.0, 0.8)]
    return TranscriptionRecord.create(video, segments, video_duration=60.0, transcription_duration=8.0,
                                      provider="assemblyai")


def test_save_writes_pretty_json(tmp_path: Path) -> None:
    store = TranscriptStore(str(tmp_path / "history"))
    record = _record()

    path = store.save(record)

    assert path is not None
    saved = Path(path)
    assert saved.name.startswith("interview_") and saved.suffix == ".json"
    assert saved.read_text(encoding="utf-8").startswith("{\n  ")
    assert json.loads(saved.read_text(encoding="utf-8"))["fingerprint"] == record.fingerprint


def test_duplicate_fingerprint_is_not_saved_twice(tmp_path: Path) -> None:
    store = TranscriptStore(str(tmp_path))
    record = _record()
    retranscribed = _record()

    assert store.save(record) is not None
    assert store.is_saved(retranscribed)
    assert store.save(retranscribed) is None
    assert len(list(tmp_path.glob("*.json"))) == 1


def test_load_all_round_trips_and_skips_bad_files(tmp_path: Path) -> None:
    store = TranscriptStore(str(tmp_path))
    record = _record()
    other = _record(video="/videos/lecture.mp4", text="Welcome.")
    store.save(record)
    store.save(other)
    (tmp_path / "corrupt.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    loaded = store.load_all()

    assert {r.fingerprint for r in loaded} == {record.fingerprint, other.fingerprint}
    restored = next(r for r in loaded if r.fingerprint == record.fingerprint)
    assert restored == record


def test_load_all_on_missing_directory(tmp_path: Path) -> None:
    assert TranscriptStore(str(tmp_path / "nothing-here")).load_all() == []


def test_search_matches_name_or_text(tmp_path: Path) -> None:
    store = TranscriptStore(str(tmp_path))
    store.save(_record())
    store.save(_record(video="/videos/lecture.mp4", text="Welcome to physics."))

    assert [r.video_name for r in store.search("PHYSICS")] == ["lecture.mp4"]
    assert [r.video_name for r in store.search("interview")] == ["interview.mov"]


def test_save_failure_raises_persistence_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")

    with pytest.raises(PersistenceError):
        TranscriptStore(str(blocker)).save(_record())
