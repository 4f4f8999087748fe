"""Custom Exceptions for the VidScribe application."""

class VidScribeError(Exception):
    """Base class for exceptions in this module."""
    pass

# --- Configuration errors (fatal, fixed by the user) ---

class ConfigurationError(VidScribeError):
    """Exception raised for errors in configuration loading."""
    pass

class BackendUnavailableError(ConfigurationError):
    """The selected recognizer cannot be used (model failed to load, language unsupported)."""
    pass

class NotAuthorizedError(ConfigurationError):
    """The provider rejected the supplied credentials."""
    pass

class MissingAPIKeyError(ConfigurationError):
    """A backend that needs an API key was called without one."""

    def __init__(self, message: str = "AssemblyAI API key is missing. Set it with 'vidscribe api-key set <KEY>'."):
        super().__init__(message)

class WhisperNotInstalledError(ConfigurationError):
    """The whisper.cpp command-line binary could not be found."""

    def __init__(self, message: str = "whisper-cli executable not found. Install whisper.cpp or set 'whisper_cpp_path' in the config."):
        super().__init__(message)

# --- Audio extraction errors ---

class AudioExtractionError(VidScribeError):
    """Exception raised for errors during audio extraction."""
    pass

class NoAudioTrackError(AudioExtractionError):
    """The video does not contain an audio stream."""

    def __init__(self, message: str = "Video does not contain an audio track"):
        super().__init__(message)

class ExportFailedError(AudioExtractionError):
    """ffmpeg could not produce the intermediate audio file."""
    pass

class AudioConversionFailedError(AudioExtractionError):
    """Conversion to 16kHz mono PCM WAV failed."""
    pass

# --- Transcription errors (transport/backend, fatal per call) ---

class TranscriptionError(VidScribeError):
    """Exception raised for errors during transcription."""
    pass

class UploadFailedError(TranscriptionError):
    """Uploading the audio payload to the cloud provider failed."""
    pass

class SubmissionFailedError(TranscriptionError):
    """Submitting the transcription job to the cloud provider failed."""
    pass

class PollingFailedError(TranscriptionError):
    """Retrieving the job status from the cloud provider failed."""
    pass

class NoTranscriptDataError(TranscriptionError):
    """The provider reported completion without a word-level payload."""

    def __init__(self, message: str = "No transcript data was returned from AssemblyAI."):
        super().__init__(message)

class TranscriptionFailedError(TranscriptionError):
    """The recognizer reported a failure."""
    pass

class TranscriptionTimeoutError(TranscriptionError):
    """The transcription did not finish within its time budget."""
    pass

class ModelNotDownloadedError(TranscriptionError):
    """The local model file required by whisper.cpp is not on disk."""
    pass

class TranscriptionInProgressError(TranscriptionError):
    """A transcription is already running on this orchestrator."""
    pass

# --- Model asset errors ---

class ModelDownloadError(VidScribeError):
    """Exception raised for errors while downloading model assets."""
    pass

class InvalidURLError(ModelDownloadError):
    """The model download URL is malformed."""
    pass

class DownloadFailedError(ModelDownloadError):
    """The model download failed (HTTP status or transport error)."""
    pass

# --- Collaborators ---

class FormattingError(VidScribeError):
    """Exception raised for errors during subtitle/text formatting."""
    pass

class FileSystemError(VidScribeError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass

class PersistenceError(VidScribeError):
    """Exception raised when a transcription record cannot be saved."""
    pass

class CredentialError(VidScribeError):
    """Exception raised when the system keyring cannot be read or written."""
    pass

class EditError(VidScribeError):
    """Exception raised for invalid transcript edit operations."""
    pass
