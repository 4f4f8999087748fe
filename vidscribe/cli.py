"""Command-Line Interface handler for VidScribe."""

import argparse
import logging
import os
import sys
from typing import List, Optional

from tqdm import tqdm

from .config_loader import ConfigLoader, PROVIDERS
from .log_setup import setup_logging, setup_logging_from_config
from .audio_extractor import AudioExtractor
from .backends.base import TranscriptionBackend
from .credentials import CredentialStore
from .exceptions import VidScribeError, ConfigurationError
from .model_assets import DownloadState, ModelAssetManager
from .models import MODEL_CATALOG, TranscriptionRecord, get_model_asset
from .orchestrator import TranscriptionOrchestrator
from .persistence import TranscriptStore
from .subtitle_formatter import get_formatter
from .utils import ensure_dir_exists, format_duration

logger = logging.getLogger(__name__) # Get logger for this module

DEFAULT_CONFIG_PATH = "config.yaml"


def create_backend(provider: str, config: dict, audio_extractor: AudioExtractor) -> TranscriptionBackend:
    """
    Instantiates the backend for ``provider`` from configuration values.

    Raises:
        ConfigurationError: If the provider is unknown.
    """
    if provider == 'on_device':
        # Imported here so torch is only loaded when this backend is used
        from .backends.on_device import OnDeviceBackend
        return OnDeviceBackend(
            model_name=config.get('on_device_model', 'base'),
            device=config.get('device', 'cuda'),
            fp16=config.get('fp16', True),
        )
    if provider == 'assemblyai':
        from .backends.cloud import DEFAULT_BASE_URL, CloudBackend
        return CloudBackend(
            base_url=config.get('assemblyai_base_url') or DEFAULT_BASE_URL,
            poll_interval=config.get('poll_interval_seconds', 3.0),
            max_poll_attempts=config.get('max_poll_attempts', 600),
            request_timeout=config.get('request_timeout', 120.0),
        )
    if provider == 'whisper_cpp':
        from .backends.local_model import LocalModelBackend
        return LocalModelBackend(
            asset_manager=ModelAssetManager(config['models_dir']),
            asset=get_model_asset(config.get('whisper_model', 'medium'), config.get('model_base_url')),
            audio_extractor=audio_extractor,
            temp_dir=config['temp_dir'],
            whisper_cpp_path=config.get('whisper_cpp_path'),
            timeout_seconds=config.get('whisper_timeout_seconds', 600.0),
        )
    raise ConfigurationError(f"Unknown provider '{provider}'. Choose one of: {', '.join(PROVIDERS)}")


class _ProgressBar:
    """Adapts (fraction, message) callbacks onto a tqdm bar counting percent."""

    def __init__(self, desc: str):
        self.bar = tqdm(total=100, desc=desc, unit="%", leave=True)

    def __call__(self, fraction: float, message: str) -> None:
        self.bar.n = int(round(fraction * 100))
        self.bar.set_postfix_str(message, refresh=False)
        self.bar.refresh()

    def close(self) -> None:
        self.bar.close()


class CLIHandler:
    """Parses arguments and dispatches VidScribe commands."""

    def __init__(self):
        self.parser = self._create_parser()
        self.config: dict = {}

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            prog="vidscribe",
            description="VidScribe: Transcribe local videos with on-device, cloud or whisper.cpp speech recognition.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter # Show defaults in help
        )
        parser.add_argument(
            "-c", "--config",
            default=DEFAULT_CONFIG_PATH,
            help="Path to the configuration YAML file."
        )
        parser.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Set the logging level for console and file output."
        )
        commands = parser.add_subparsers(dest="command", required=True)

        transcribe = commands.add_parser("transcribe", help="Transcribe a video file.")
        transcribe.add_argument("video", help="Path to the input video file.")
        transcribe.add_argument(
            "-o", "--output-dir",
            default=None,
            help="Directory for the exported transcript. Defaults to the video's directory."
        )
        transcribe.add_argument("--provider", choices=PROVIDERS, default=None,
                                help="Override the transcription provider from config.")
        transcribe.add_argument("--language", default=None,
                                help="Language code (e.g. en, lt, or auto for whisper.cpp).")
        transcribe.add_argument("--format", dest="output_format", choices=["srt", "txt"], default=None,
                                help="Export format. Defaults to output_format from config.")
        transcribe.add_argument("--char-limit", type=int, default=None,
                                help="Maximum characters per SRT line.")
        transcribe.add_argument("--no-save", action="store_true",
                                help="Do not store the transcription in the history directory.")

        models = commands.add_parser("models", help="Manage whisper.cpp model files.")
        model_actions = models.add_subparsers(dest="action", required=True)
        model_actions.add_parser("list", help="List available models and their download state.")
        download = model_actions.add_parser("download", help="Download a model.")
        download.add_argument("name", choices=list(MODEL_CATALOG))
        delete = model_actions.add_parser("delete", help="Delete a downloaded model.")
        delete.add_argument("name", choices=list(MODEL_CATALOG))

        api_key = commands.add_parser("api-key", help="Manage the AssemblyAI API key.")
        key_actions = api_key.add_subparsers(dest="action", required=True)
        key_set = key_actions.add_parser("set", help="Store the API key in the system keychain.")
        key_set.add_argument("value")
        key_actions.add_parser("clear", help="Remove the stored API key.")

        history = commands.add_parser("history", help="List saved transcriptions.")
        history.add_argument("--search", default=None, help="Only show transcriptions containing this text.")

        return parser

    def _load_config(self, config_path: str) -> dict:
        loader = ConfigLoader()
        if config_path == DEFAULT_CONFIG_PATH and not os.path.exists(config_path):
            logger.info(f"No {DEFAULT_CONFIG_PATH} found; using built-in defaults.")
            config = loader.apply_defaults({})
            loader.validate(config)
            return config
        return loader.load_config(config_path)

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Parses arguments, sets up logging, loads config, and runs the command."""
        args = self.parser.parse_args(argv)

        # --- Setup Logging ---
        log_level = getattr(logging, args.log_level.upper(), logging.INFO)
        setup_logging(log_level=log_level)

        # --- Load Configuration ---
        try:
            self.config = self._load_config(args.config)
        except ConfigurationError as e:
            logger.critical(f"Failed to load configuration from {args.config}: {e}")
            sys.exit(1)
        except FileNotFoundError:
            logger.critical(f"Configuration file not found: {args.config}")
            sys.exit(1)

        # --- Re-configure Logging with settings from Config ---
        log_path = setup_logging_from_config(self.config, log_level)
        if log_path:
            logger.info(f"Logging to {log_path}")

        try:
            handler = getattr(self, f"_cmd_{args.command.replace('-', '_')}")
            handler(args)
            sys.exit(0)
        except FileNotFoundError as e:
            logger.error(str(e))
            sys.exit(1)
        except VidScribeError as e:
            # Errors originating from our application logic
            logger.error(f"A VidScribe error occurred: {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
            sys.exit(1)
        except Exception as e:
            logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
            sys.exit(2) # Different exit code for unexpected crashes

    # --- Commands ---

    def _cmd_transcribe(self, args: argparse.Namespace) -> None:
        config = self.config
        if not os.path.isfile(args.video):
            raise FileNotFoundError(f"Input video file not found or is not a file: {args.video}")

        provider = args.provider or config['provider']
        output_format = args.output_format or config['output_format']
        char_limit = args.char_limit or config['srt_char_limit']
        formatter = get_formatter(output_format, char_limit=char_limit)

        audio_extractor = AudioExtractor(
            temp_dir=config['temp_dir'],
            ffmpeg_path=config.get('ffmpeg_path'), # None if not specified
            ffprobe_path=config.get('ffprobe_path'),
        )
        backend = create_backend(provider, config, audio_extractor)
        orchestrator = TranscriptionOrchestrator(
            config=config,
            audio_extractor=audio_extractor,
            backends={provider: backend},
            credential_store=CredentialStore(config['keyring_service'], config['keyring_account']),
        )

        progress = _ProgressBar(desc=os.path.basename(args.video))
        try:
            record = orchestrator.transcribe(args.video, on_progress=progress, language=args.language,
                                             provider=provider)
        finally:
            progress.close()

        output_dir = args.output_dir or os.path.dirname(os.path.abspath(args.video))
        ensure_dir_exists(output_dir)
        stem = os.path.splitext(record.video_name)[0]
        output_path = os.path.join(output_dir, f"{stem}.{formatter.extension}")
        formatter.write(record, output_path)

        if not args.no_save:
            TranscriptStore(config['transcriptions_dir']).save(record)

        print(f"{len(record.segments)} segments written to {output_path} "
              f"(took {record.formatted_transcription_duration})")

    def _asset_manager(self) -> ModelAssetManager:
        return ModelAssetManager(self.config['models_dir'], DownloadState())

    def _cmd_models(self, args: argparse.Namespace) -> None:
        manager = self._asset_manager()
        base_url = self.config.get('model_base_url')

        if args.action == "list":
            configured = self.config.get('whisper_model')
            for name in MODEL_CATALOG:
                asset = get_model_asset(name, base_url)
                marker = "*" if name == configured else " "
                status = "downloaded" if manager.is_downloaded(asset) else "not downloaded"
                print(f"{marker} {name:<10} {asset.size_estimate:>8}  {status:<15} {asset.display_name}")
            return

        asset = get_model_asset(args.name, base_url)
        if args.action == "download":
            progress = _ProgressBar(desc=f"ggml-{asset.name}")
            try:
                path = manager.download(asset, on_progress=progress)
            finally:
                progress.close()
            print(f"Model {asset.name} ready at {path}")
        elif args.action == "delete":
            if manager.delete(asset):
                print(f"Deleted model {asset.name}")
            else:
                print(f"Model {asset.name} is not downloaded")

    def _cmd_api_key(self, args: argparse.Namespace) -> None:
        store = CredentialStore(self.config['keyring_service'], self.config['keyring_account'])
        if args.action == "set":
            store.set(args.value)
            print("API key saved" if args.value.strip() else "API key removed")
        else:
            store.clear()
            print("API key removed")

    def _cmd_history(self, args: argparse.Namespace) -> None:
        store = TranscriptStore(self.config['transcriptions_dir'])
        records = store.search(args.search) if args.search else store.load_all()
        if not records:
            print("No saved transcriptions")
            return
        for record in records:
            print(self._describe(record))

    @staticmethod
    def _describe(record: TranscriptionRecord) -> str:
        created = record.created_at.astimezone().strftime('%Y-%m-%d %H:%M')
        return (f"{created}  {record.video_name}  [{format_duration(record.video_duration)}]  "
                f"{len(record.segments)} segments  via {record.provider or 'unknown'}")


def main(argv: Optional[List[str]] = None) -> None:
    CLIHandler().run(argv)
