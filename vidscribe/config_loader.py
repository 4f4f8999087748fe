"""Handles loading and saving configuration from YAML files."""

import copy
import yaml
import os
import logging
import tempfile
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PROVIDERS = ("on_device", "assemblyai", "whisper_cpp")

DEFAULT_CONFIG = {
    'provider': 'whisper_cpp',
    'language': 'en',
    'temp_dir': os.path.join(tempfile.gettempdir(), 'vidscribe'),
    'log_dir': 'logs',
    'log_file': 'vidscribe.log',
    'ffmpeg_path': None,
    'ffprobe_path': None,
    # whisper.cpp
    'models_dir': os.path.join(os.path.expanduser('~'), '.vidscribe', 'models'),
    'whisper_model': 'medium',
    'model_base_url': None,
    'whisper_cpp_path': None,
    'whisper_timeout_seconds': 600.0,
    # openai-whisper on-device recognizer
    'on_device_model': 'base',
    'device': 'cuda',
    'fp16': True,
    # AssemblyAI
    'assemblyai_base_url': 'https://api.assemblyai.com/v2',
    'poll_interval_seconds': 3.0,
    'max_poll_attempts': 600,
    'request_timeout': 120.0,
    # Persistence and export
    'transcriptions_dir': os.path.join(os.path.expanduser('~'), '.vidscribe', 'transcriptions'),
    'output_format': 'srt',
    'srt_char_limit': 42,
    # Credential storage
    'keyring_service': 'vidscribe.assemblyai',
    'keyring_account': 'apikey',
}

_POSITIVE_NUMBERS = ('whisper_timeout_seconds', 'poll_interval_seconds', 'max_poll_attempts',
                     'request_timeout', 'srt_char_limit')

class ConfigLoader:
    """Loads configuration settings from a YAML file."""

    def load_config(self, config_path: str) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Values from the file override DEFAULT_CONFIG.

        Args:
            config_path: The path to the YAML configuration file.

        Returns:
            A dictionary containing the loaded configuration settings.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML,
                              holds invalid values, or cannot be read.
        """
        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
             logger.error(f"Configuration path is not a file: {config_path}")
             raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if loaded is None:
            loaded = {} # Empty file means defaults only
        if not isinstance(loaded, dict):
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")

        config = self.apply_defaults(loaded)
        self.validate(config)
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config

    @staticmethod
    def apply_defaults(overrides: dict) -> dict:
        config = copy.deepcopy(DEFAULT_CONFIG)
        config.update({key: value for key, value in overrides.items()})
        return config

    @staticmethod
    def validate(config: dict) -> None:
        """
        Raises:
            ConfigurationError: If a known setting holds an unusable value.
        """
        provider = config.get('provider')
        if provider not in PROVIDERS:
            raise ConfigurationError(
                f"Unknown provider '{provider}'. Choose one of: {', '.join(PROVIDERS)}"
            )
        for key in _POSITIVE_NUMBERS:
            value = config.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"Configuration value '{key}' must be a positive number, got {value!r}")
        if config.get('output_format') not in ('srt', 'txt'):
            raise ConfigurationError(f"Unsupported output format '{config.get('output_format')}'. Use 'srt' or 'txt'.")

    def save_config(self, config: dict, config_path: str) -> None:
        """
        Writes the configuration back to YAML.

        Raises:
            ConfigurationError: If the file cannot be written.
        """
        self.validate(config)
        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config, f, default_flow_style=False, sort_keys=True, allow_unicode=True)
            logger.info(f"Configuration saved to {config_path}")
        except (IOError, yaml.YAMLError) as e:
            logger.error(f"Could not write configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not write configuration file {config_path}: {e}") from e
