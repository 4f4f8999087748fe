from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from unittest import mock

import pytest
import requests

from vidscribe.exceptions import DownloadFailedError, InvalidURLError
from vidscribe.model_assets import DownloadState, ModelAssetManager
from vidscribe.models import get_model_asset


def _streaming_response(chunks, status_code=200, headers=None) -> mock.MagicMock:
    response = mock.MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.iter_content.return_value = iter(chunks)
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


@pytest.fixture
def asset():
    return get_model_asset("tiny", base_url="https://models.example.test/whisper")


def test_download_streams_into_place(tmp_path: Path, asset) -> None:
    session = mock.Mock()
    session.get.return_value = _streaming_response([b"ab", b"cd"], headers={"Content-Length": "4"})
    state = DownloadState()
    manager = ModelAssetManager(str(tmp_path), state, session=session, chunk_size=2)
    updates = []

    path = manager.download(asset, on_progress=lambda f, m: updates.append(f))

    assert Path(path).read_bytes() == b"abcd"
    assert Path(path).name == "ggml-tiny.bin"
    session.get.assert_called_once_with(
        "https://models.example.test/whisper/ggml-tiny.bin", stream=True, timeout=60.0
    )
    assert updates == [0.5, 1.0]
    assert state.progress == 1.0
    assert not state.is_downloading
    assert state.error is None
    assert manager.is_downloaded(asset)
    assert [p.name for p in tmp_path.iterdir()] == ["ggml-tiny.bin"]


def test_download_is_idempotent_without_network(tmp_path: Path, asset) -> None:
    (tmp_path / asset.file_name).write_bytes(b"existing")
    session = mock.Mock()
    state = DownloadState()
    manager = ModelAssetManager(str(tmp_path), state, session=session)

    path = manager.download(asset)

    assert Path(path).read_bytes() == b"existing"
    session.get.assert_not_called()
    assert state.progress == 1.0
    assert not state.is_downloading


def test_non_200_response_publishes_failure(tmp_path: Path, asset) -> None:
    session = mock.Mock()
    session.get.return_value = _streaming_response([], status_code=404)
    state = DownloadState()
    seen = []
    state.subscribe(lambda s: seen.append((s.is_downloading, s.error)))
    manager = ModelAssetManager(str(tmp_path), state, session=session)

    with pytest.raises(DownloadFailedError, match="HTTP 404"):
        manager.download(asset)

    assert not state.is_downloading
    assert "404" in state.error
    assert seen[0] == (True, None)
    assert seen[-1][0] is False
    assert not manager.is_downloaded(asset)


def test_transport_error_removes_partial_file(tmp_path: Path, asset) -> None:
    def broken_stream(chunk_size):
        yield b"partial"
        raise requests.ConnectionError("connection reset")

    response = _streaming_response([])
    response.iter_content.side_effect = broken_stream
    session = mock.Mock()
    session.get.return_value = response
    state = DownloadState()
    manager = ModelAssetManager(str(tmp_path), state, session=session)

    with pytest.raises(DownloadFailedError):
        manager.download(asset)

    assert list(tmp_path.iterdir()) == []
    assert "connection reset" in state.error


def test_invalid_url(tmp_path: Path, asset) -> None:
    state = DownloadState()
    manager = ModelAssetManager(str(tmp_path), state, session=mock.Mock())

    with pytest.raises(InvalidURLError):
        manager.download(replace(asset, base_url="not a url"))
    assert state.error == "Invalid download URL"


def test_delete_is_idempotent(tmp_path: Path, asset) -> None:
    (tmp_path / asset.file_name).write_bytes(b"model")
    manager = ModelAssetManager(str(tmp_path), session=mock.Mock())

    assert manager.delete(asset) is True
    assert manager.delete(asset) is False
    assert not manager.is_downloaded(asset)


def test_empty_file_is_not_downloaded(tmp_path: Path, asset) -> None:
    (tmp_path / asset.file_name).write_bytes(b"")
    manager = ModelAssetManager(str(tmp_path), session=mock.Mock())

    assert not manager.is_downloaded(asset)
    assert manager.list_downloaded() == []


def test_listener_errors_do_not_break_state() -> None:
    state = DownloadState()
    unsubscribe = state.subscribe(mock.Mock(side_effect=RuntimeError("boom")))

    state.update(0.4, "Downloading")
    unsubscribe()
    state.update(0.5, "Downloading")

    assert state.progress == 0.5


def test_malformed_content_length_falls_back_to_catalog_size(tmp_path: Path, asset) -> None:
    session = mock.Mock()
    session.get.return_value = _streaming_response([b"abcd"], headers={"Content-Length": "abc"})
    state = DownloadState()
    manager = ModelAssetManager(str(tmp_path), state, session=session)
    updates = []

    path = manager.download(asset, on_progress=lambda f, m: updates.append(f))

    assert Path(path).read_bytes() == b"abcd"
    assert updates == [pytest.approx(4 / asset.approximate_bytes)]
    assert not state.is_downloading
    assert state.error is None


def test_unexpected_error_still_ends_the_download(tmp_path: Path, asset) -> None:
    response = _streaming_response([])
    response.iter_content.side_effect = ValueError("decoder broke")
    session = mock.Mock()
    session.get.return_value = response
    state = DownloadState()
    manager = ModelAssetManager(str(tmp_path), state, session=session)

    with pytest.raises(ValueError):
        manager.download(asset)

    assert not state.is_downloading
    assert state.error == "decoder broke"
    assert list(tmp_path.iterdir()) == []
