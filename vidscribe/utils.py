"""Utility functions for VidScribe."""

import os
import logging
from .exceptions import FileSystemError

logger = logging.getLogger(__name__)

def ensure_dir_exists(dir_path: str) -> None:
    """
    Ensures that a directory exists. Creates it if it doesn't.

    Args:
        dir_path: The path to the directory.

    Raises:
        FileSystemError: If the directory cannot be created due to permissions
                         or if the path exists but is not a directory.
    """
    if not dir_path:
        raise ValueError("Directory path cannot be empty.")
    try:
        if not os.path.exists(dir_path):
            os.makedirs(dir_path)
            logger.info(f"Created directory: {dir_path}")
        elif not os.path.isdir(dir_path):
            raise FileSystemError(f"Path exists but is not a directory: {dir_path}")
    except OSError as e:
        logger.error(f"Error creating or accessing directory {dir_path}: {e}", exc_info=True)
        raise FileSystemError(f"Could not create or access directory {dir_path}: {e}") from e

def remove_file_quietly(file_path: str) -> bool:
    """Best-effort delete. Returns True if the file was removed."""
    if not file_path or not os.path.exists(file_path):
        return False
    try:
        os.remove(file_path)
        logger.debug(f"Removed file: {file_path}")
        return True
    except OSError as e:
        logger.warning(f"Could not remove file {file_path}: {e}")
        return False

def format_time_srt(seconds: float) -> str:
    """
    Formats seconds into SRT time format HH:MM:SS,ms.

    Args:
        seconds: Time in seconds.

    Returns:
        Formatted time string.
    """
    if seconds < 0:
        seconds = 0.0 # Ensure non-negative time
    milliseconds = round(seconds * 1000)
    hrs = milliseconds // 3600000
    milliseconds %= 3600000
    mins = milliseconds // 60000
    milliseconds %= 60000
    secs = milliseconds // 1000
    milliseconds %= 1000
    return f"{hrs:02d}:{mins:02d}:{secs:02d},{milliseconds:03d}"

def parse_time_srt(value: str) -> float:
    """Parses an SRT timestamp (HH:MM:SS,mmm) back into seconds."""
    hms, _, millis = value.strip().partition(',')
    hrs, mins, secs = (int(part) for part in hms.split(':'))
    return hrs * 3600 + mins * 60 + secs + int(millis or 0) / 1000.0

def format_timestamp(seconds: float) -> str:
    """Display timestamp: MM:SS.mmm, or HH:MM:SS.mmm from one hour on."""
    if seconds < 0:
        seconds = 0.0
    total_ms = int(round(seconds * 1000))
    hrs, rem = divmod(total_ms, 3600000)
    mins, rem = divmod(rem, 60000)
    secs, millis = divmod(rem, 1000)
    if hrs > 0:
        return f"{hrs:02d}:{mins:02d}:{secs:02d}.{millis:03d}"
    return f"{mins:02d}:{secs:02d}.{millis:03d}"

def parse_timestamp(value: str) -> float:
    """
    Parses a user-edited timestamp (HH:MM:SS.mmm or MM:SS.mmm) into seconds.

    A comma is accepted as the decimal separator.

    Raises:
        ValueError: If the string is not in one of the accepted forms.
    """
    parts = value.strip().split(':')
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid timestamp '{value}'. Expected MM:SS.mmm or HH:MM:SS.mmm")
    seconds = float(parts[-1].replace(',', '.'))
    minutes = float(parts[-2])
    hours = float(parts[0]) if len(parts) == 3 else 0.0
    return hours * 3600 + minutes * 60 + seconds

def format_duration(duration: float) -> str:
    """Formats a duration as MM:SS, or HH:MM:SS when at least one hour."""
    total = int(duration)
    hours = total // 3600
    minutes = total % 3600 // 60
    seconds = total % 60
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"
