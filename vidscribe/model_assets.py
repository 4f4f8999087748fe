"""Download, presence checks and deletion of whisper.cpp model files."""

import logging
import os
import tempfile
from typing import Callable, List, Optional
from urllib.parse import urlparse

import requests

from .exceptions import DownloadFailedError, InvalidURLError
from .models import MODEL_CATALOG, ModelAsset
from .utils import ensure_dir_exists, remove_file_quietly

logger = logging.getLogger(__name__)

DownloadListener = Callable[["DownloadState"], None]


class DownloadState:
    """
    Observable download status shared by whoever needs to follow a download.

    Construct one and hand the same instance to the ModelAssetManager and to
    any observer. Listeners are called after every change.
    """

    def __init__(self) -> None:
        self._listeners: List[DownloadListener] = []
        self.reset()

    def reset(self) -> None:
        self.is_downloading = False
        self.progress = 0.0
        self.asset_name: Optional[str] = None
        self.error: Optional[str] = None
        self.status_message = ""
        self._notify()

    def subscribe(self, listener: DownloadListener) -> Callable[[], None]:
        """Registers a listener and returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self, asset: ModelAsset) -> None:
        self.is_downloading = True
        self.asset_name = asset.name
        self.progress = 0.0
        self.error = None
        self.status_message = "Starting download..."
        self._notify()

    def update(self, progress: float, message: str) -> None:
        self.progress = progress
        self.status_message = message
        self._notify()

    def complete(self) -> None:
        self.is_downloading = False
        self.progress = 1.0
        self.status_message = "Download complete"
        self.asset_name = None
        self._notify()

    def fail(self, error: str) -> None:
        self.is_downloading = False
        self.error = error
        self.status_message = "Download failed"
        self.asset_name = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(getattr(self, '_listeners', [])):
            try:
                listener(self)
            except Exception as e:
                logger.warning(f"Download state listener raised {e!r}; ignoring")


class ModelAssetManager:
    """Keeps whisper.cpp model files in a local directory."""

    def __init__(
        self,
        models_dir: str,
        download_state: Optional[DownloadState] = None,
        *,
        session: Optional[requests.Session] = None,
        chunk_size: int = 1024 * 1024,
        request_timeout: float = 60.0,
    ) -> None:
        self.models_dir = models_dir
        self.download_state = download_state or DownloadState()
        self._session = session or requests.Session()
        self.chunk_size = chunk_size
        self.request_timeout = request_timeout

    def model_path(self, asset: ModelAsset) -> str:
        return os.path.join(self.models_dir, asset.file_name)

    def is_downloaded(self, asset: ModelAsset) -> bool:
        path = self.model_path(asset)
        return os.path.isfile(path) and os.path.getsize(path) > 0

    def list_downloaded(self) -> List[ModelAsset]:
        return [asset for asset in MODEL_CATALOG.values() if self.is_downloaded(asset)]

    def delete(self, asset: ModelAsset) -> bool:
        """Removes a model file. Returns False when there was nothing to delete."""
        path = self.model_path(asset)
        if not os.path.exists(path):
            logger.info(f"Model {asset.name} is not downloaded; nothing to delete")
            return False
        os.remove(path)
        logger.info(f"Deleted model {asset.name} at {path}")
        return True

    def download(self, asset: ModelAsset, on_progress: Optional[Callable[[float, str], None]] = None) -> str:
        """
        Downloads a model file unless it is already present.

        Args:
            asset: The model to fetch.
            on_progress: Receives (fraction, message) as bytes arrive.

        Returns:
            Path of the model file.

        Raises:
            InvalidURLError: If the asset URL is malformed.
            DownloadFailedError: On a non-200 response or any transport error.
        """
        state = self.download_state
        state.start(asset)
        destination = self.model_path(asset)

        if os.path.exists(destination):
            logger.info(f"Model {asset.name} already present at {destination}")
            state.complete()
            return destination

        url = asset.download_url
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            logger.error(f"Invalid download URL for model {asset.name}: {url}")
            state.fail("Invalid download URL")
            raise InvalidURLError(f"Invalid download URL: {url}")

        ensure_dir_exists(self.models_dir)
        logger.info(f"Downloading model {asset.name} from {url} to {destination}")
        part_path = None
        try:
            with self._session.get(url, stream=True, timeout=self.request_timeout) as response:
                if response.status_code != 200:
                    raise DownloadFailedError(
                        f"Failed to download Whisper model {asset.name} (HTTP {response.status_code})."
                    )
                expected = self._expected_size(response, asset)
                with tempfile.NamedTemporaryFile(
                    dir=self.models_dir, prefix=f".{asset.file_name}.", suffix=".part", delete=False
                ) as part:
                    part_path = part.name
                    written = 0
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if not chunk:
                            continue
                        part.write(chunk)
                        written += len(chunk)
                        self._report(asset, min(written / expected, 1.0), on_progress)
            # Body fully received: place the file before anything else can touch it
            self._place(part_path, destination)
            part_path = None
        except DownloadFailedError as e:
            logger.error(str(e))
            state.fail(str(e))
            raise
        except (requests.RequestException, OSError) as e:
            logger.error(f"Download of model {asset.name} failed: {e}", exc_info=True)
            state.fail(str(e))
            raise DownloadFailedError(
                f"Failed to download Whisper model {asset.name}. Check your internet connection. ({e})"
            ) from e
        except Exception as e:
            # Observers must never see a download that stays in progress
            logger.error(f"Unexpected error downloading model {asset.name}: {e}", exc_info=True)
            state.fail(str(e))
            raise
        finally:
            if part_path:
                remove_file_quietly(part_path)

        logger.info(f"Model {asset.name} downloaded ({os.path.getsize(destination)} bytes)")
        state.complete()
        return destination

    def _report(self, asset: ModelAsset, fraction: float,
                on_progress: Optional[Callable[[float, str], None]]) -> None:
        message = f"Downloading {asset.display_name}: {int(fraction * 100)}%"
        self.download_state.update(fraction, message)
        if on_progress is not None:
            try:
                on_progress(fraction, message)
            except Exception as e:
                logger.warning(f"Download progress callback raised {e!r}; ignoring")

    @staticmethod
    def _expected_size(response: requests.Response, asset: ModelAsset) -> int:
        """Content-Length when the server sends a usable one, else the catalog estimate."""
        try:
            length = int(response.headers.get('Content-Length') or 0)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed Content-Length for model {asset.name}")
            length = 0
        return length if length > 0 else asset.approximate_bytes

    @staticmethod
    def _place(part_path: str, destination: str) -> None:
        if os.path.exists(destination):
            logger.debug(f"Removing existing file at {destination}")
            os.remove(destination)
        os.replace(part_path, destination)
