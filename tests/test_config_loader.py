from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from vidscribe.config_loader import DEFAULT_CONFIG, ConfigLoader
from vidscribe.exceptions import ConfigurationError


def test_file_values_override_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("provider: assemblyai\nlanguage: lt\npoll_interval_seconds: 1.5\n", encoding="utf-8")

    config = ConfigLoader().load_config(str(path))

    assert config["provider"] == "assemblyai"
    assert config["language"] == "lt"
    assert config["poll_interval_seconds"] == 1.5
    assert config["srt_char_limit"] == DEFAULT_CONFIG["srt_char_limit"]


def test_empty_file_yields_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    assert ConfigLoader().load_config(str(path)) == DEFAULT_CONFIG


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        ConfigLoader().load_config(str(tmp_path / "absent.yaml"))


@pytest.mark.parametrize("content", [
    "provider: [unclosed",
    "- just\n- a list\n",
    "provider: carrier_pigeon\n",
    "srt_char_limit: 0\n",
    "max_poll_attempts: many\n",
    "output_format: vtt\n",
])
def test_invalid_configuration(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigLoader().load_config(str(path))


def test_save_config_round_trip(tmp_path: Path) -> None:
    loader = ConfigLoader()
    config = loader.apply_defaults({"provider": "on_device", "whisper_model": "small"})
    path = tmp_path / "saved.yaml"

    loader.save_config(config, str(path))

    assert yaml.safe_load(path.read_text(encoding="utf-8"))["whisper_model"] == "small"
    assert loader.load_config(str(path)) == config


def test_defaults_are_not_shared_between_loads() -> None:
    first = ConfigLoader.apply_defaults({})
    first["language"] = "de"

    assert ConfigLoader.apply_defaults({})["language"] == "en"
