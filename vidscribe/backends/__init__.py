from .base import ProgressCallback, ProgressReporter, TranscriptionBackend

__all__ = ["ProgressCallback", "ProgressReporter", "TranscriptionBackend"]
