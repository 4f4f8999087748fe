"""Stores completed transcriptions as JSON documents, one file per record."""

import json
import logging
import os
import uuid
from typing import List, Optional

from .exceptions import FileSystemError, PersistenceError
from .models import TranscriptionRecord
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)


class TranscriptStore:
    """
    Saves and loads TranscriptionRecords in a directory.

    A record whose fingerprint matches one already stored is not saved again.
    """

    def __init__(self, directory: str):
        self.directory = directory

    def _record_paths(self) -> List[str]:
        if not os.path.isdir(self.directory):
            return []
        return sorted(
            os.path.join(self.directory, name)
            for name in os.listdir(self.directory)
            if name.endswith('.json')
        )

    def load_all(self) -> List[TranscriptionRecord]:
        """
        Loads every stored record, newest first.

        Files that cannot be read or parsed are logged and skipped.
        """
        records = []
        for path in self._record_paths():
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    records.append(TranscriptionRecord.from_dict(json.load(f)))
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping unreadable transcription file {path}: {e}")
        records.sort(key=lambda record: record.created_at, reverse=True)
        return records

    def is_saved(self, record: TranscriptionRecord) -> bool:
        return any(existing.fingerprint == record.fingerprint for existing in self.load_all())

    def save(self, record: TranscriptionRecord) -> Optional[str]:
        """
        Writes the record unless a record with the same fingerprint exists.

        Returns:
            Path of the new file, or None when the record was a duplicate.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        if self.is_saved(record):
            logger.info(f"Transcription of {record.video_name} already saved; skipping duplicate")
            return None

        stem = os.path.splitext(record.video_name)[0] or "transcription"
        path = os.path.join(self.directory, f"{stem}_{uuid.uuid4().hex}.json")
        try:
            ensure_dir_exists(self.directory)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)
        except (OSError, FileSystemError) as e:
            logger.error(f"Failed to save transcription to {path}: {e}", exc_info=True)
            raise PersistenceError(f"Could not save transcription: {e}") from e
        logger.info(f"Saved transcription of {record.video_name} to {path}")
        return path

    def search(self, query: str) -> List[TranscriptionRecord]:
        """Records whose video name or any segment text contains ``query`` (case-insensitive)."""
        needle = query.lower()
        return [
            record for record in self.load_all()
            if needle in record.video_name.lower()
            or any(needle in segment.text.lower() for segment in record.segments)
        ]
