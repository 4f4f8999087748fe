from __future__ import annotations

from pathlib import Path
from unittest import mock

import ffmpeg
import pytest

from vidscribe.audio_extractor import AudioExtractor
from vidscribe.exceptions import AudioConversionFailedError, ExportFailedError, NoAudioTrackError

PROBE_WITH_AUDIO = {
    "format": {"duration": "12.480000"},
    "streams": [{"codec_type": "video"}, {"codec_type": "audio"}],
}


@pytest.fixture
def video(tmp_path: Path) -> Path:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"video")
    return path


def _fake_run(output_path_holder):
    def run(stream, **kwargs):
        output_path = next(arg for arg in stream.get_args() if arg.endswith((".m4a", ".wav")))
        Path(output_path).write_bytes(b"audio")
        output_path_holder.append(output_path)
        return b"", b""
    return run


def test_extract_audio_writes_unique_m4a(tmp_path: Path, video: Path) -> None:
    outputs = []
    extractor = AudioExtractor(temp_dir=str(tmp_path / "temp"))

    with mock.patch("vidscribe.audio_extractor.ffmpeg.probe", return_value=PROBE_WITH_AUDIO), \
            mock.patch.object(ffmpeg.nodes.OutputStream, "run", autospec=True, side_effect=_fake_run(outputs)):
        first = extractor.extract_audio(str(video))
        second = extractor.extract_audio(str(video))

    assert first.duration_seconds == pytest.approx(12.48)
    assert first.audio_path.endswith(".m4a")
    assert first.audio_path != second.audio_path
    assert Path(first.audio_path).parent == tmp_path / "temp"


def test_extract_audio_without_audio_stream(tmp_path: Path, video: Path) -> None:
    probe = {"format": {"duration": "3.0"}, "streams": [{"codec_type": "video"}]}
    extractor = AudioExtractor(temp_dir=str(tmp_path / "temp"))

    with mock.patch("vidscribe.audio_extractor.ffmpeg.probe", return_value=probe):
        with pytest.raises(NoAudioTrackError, match="does not contain an audio track"):
            extractor.extract_audio(str(video))


def test_extract_audio_missing_video(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        AudioExtractor(temp_dir=str(tmp_path)).extract_audio(str(tmp_path / "missing.mp4"))


def test_unreadable_media_is_an_export_failure(tmp_path: Path, video: Path) -> None:
    error = ffmpeg.Error("ffprobe", b"", b"Invalid data found when processing input")

    with mock.patch("vidscribe.audio_extractor.ffmpeg.probe", side_effect=error):
        with pytest.raises(ExportFailedError, match="Invalid data"):
            AudioExtractor(temp_dir=str(tmp_path)).extract_audio(str(video))


def test_wav_conversion_failure(tmp_path: Path) -> None:
    error = ffmpeg.Error("ffmpeg", b"", b"Conversion failed!")

    with mock.patch.object(ffmpeg.nodes.OutputStream, "run", autospec=True, side_effect=error):
        with pytest.raises(AudioConversionFailedError, match="Conversion failed"):
            AudioExtractor(temp_dir=str(tmp_path)).convert_to_pcm_wav(str(tmp_path / "a.m4a"),
                                                                      str(tmp_path / "a.wav"))
