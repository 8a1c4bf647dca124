"""
Configuration management with three-tier precedence system:
1. Default values from codebase
2. Environment variables from .env
3. Explicit overrides (command line flags)

Precedence: Overrides > Environment Variables > Defaults
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, List, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

MIB = 1024 * 1024


class ConfigManager:
    """Manages configuration with three-tier precedence."""

    # Default values (Tier 1 - Codebase defaults)
    DEFAULTS = {
        "TRANSCRIPTION_ENDPOINT_URL": "",
        "TRANSCRIPTION_API_KEY": "",
        "TRANSCRIPTION_AUTH": "api-key",
        "SUMMARY_ENDPOINT_URL": "",
        "SUMMARY_API_KEY": "",
        "SUMMARY_MODEL": "gpt-4o-mini",
        "SUMMARY_API_VERSION": "2024-06-01",
        "NOTION_API_TOKEN": "",
        "NOTION_DATABASE_ID": "",
        "RECORDING_MODE": "both",
        "RECORDING_LANGUAGE": "auto",
        "RECORDING_MICROPHONE": "",
        "UPLOAD_LIMIT_MB": "25",
        "SEGMENT_MINUTES": "20",
        "SEGMENT_DELAY_SECONDS": "5",
        "MP3_BITRATE": "128k",
        "MIN_RECORDING_BYTES": "10240",
        "COMPRESS_BEFORE_UPLOAD": "true",
        "SCRATCH_DIR": "",
        "OUTPUT_DIR": ".",
        "LOG_LEVEL": "INFO",
    }

    @staticmethod
    def get(key: str, override: Optional[Any] = None) -> Any:
        """
        Get configuration value with three-tier precedence.

        Args:
            key: Configuration key
            override: Explicit value (highest priority)

        Returns:
            Configuration value from highest priority source

        Priority:
            1. Override (if provided and not empty)
            2. Environment variable
            3. Default value
        """
        # Tier 3: explicit override (highest priority)
        if override is not None and override != "":
            return override

        # Tier 2: Environment variable
        env_value = os.getenv(key)
        if env_value is not None and env_value != "":
            return env_value

        # Tier 1: Default value
        return ConfigManager.DEFAULTS.get(key, "")

    @staticmethod
    def get_display_value(key: str, override: Optional[Any] = None) -> tuple[Any, str]:
        """
        Get configuration value and its source.

        Returns:
            Tuple of (value, source) where source is 'override', 'env', or 'default'
        """
        if override is not None and override != "":
            return override, "override"

        env_value = os.getenv(key)
        if env_value is not None and env_value != "":
            return env_value, "env"

        default_value = ConfigManager.DEFAULTS.get(key, "")
        return default_value, "default"

    @staticmethod
    def is_using_default(key: str, override: Optional[Any] = None) -> bool:
        """Check if configuration is using default value."""
        _, source = ConfigManager.get_display_value(key, override)
        return source == "default"

    @staticmethod
    def is_using_env(key: str, override: Optional[Any] = None) -> bool:
        """Check if configuration is using environment variable."""
        _, source = ConfigManager.get_display_value(key, override)
        return source == "env"

    @staticmethod
    def get_int(key: str, override: Optional[Any] = None) -> int:
        value = ConfigManager.get(key, override)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{key} must be an integer, got {value!r}")

    @staticmethod
    def get_float(key: str, override: Optional[Any] = None) -> float:
        value = ConfigManager.get(key, override)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{key} must be a number, got {value!r}")

    @staticmethod
    def get_bool(key: str, override: Optional[Any] = None) -> bool:
        if isinstance(override, bool):
            return override
        value = str(ConfigManager.get(key, override)).strip().lower()
        return value in ("1", "true", "yes", "on")

    @staticmethod
    def missing(keys: List[str]) -> List[str]:
        """Return the keys that resolve to an empty value."""
        return [key for key in keys if not ConfigManager.get(key)]


def validate_credentials(require_notion: bool = False) -> None:
    """
    Check that the remote services needed for a run are configured.

    Raises:
        ConfigurationError: If a required key is missing
    """
    required = ["TRANSCRIPTION_ENDPOINT_URL", "TRANSCRIPTION_API_KEY"]
    if require_notion:
        required += ["NOTION_API_TOKEN", "NOTION_DATABASE_ID"]

    missing = ConfigManager.missing(required)
    if missing:
        raise ConfigurationError(
            "Missing configuration: " + ", ".join(missing) + ". Set them in the environment or in a .env file."
        )


@dataclass
class PipelineSettings:
    """Typed settings for one pipeline run."""

    upload_limit_bytes: int = 25 * MIB
    segment_seconds: float = 20 * 60
    segment_delay_seconds: float = 5.0
    mp3_bitrate: str = "128k"
    min_recording_bytes: int = 10240
    compress_before_upload: bool = True
    scratch_dir: Optional[str] = None
    output_dir: str = "."
    language: str = "auto"

    def __post_init__(self):
        if self.upload_limit_bytes <= 0:
            raise ConfigurationError("Upload limit must be positive")
        if self.segment_seconds <= 0:
            raise ConfigurationError("Segment duration must be positive")
        if self.segment_delay_seconds < 0:
            raise ConfigurationError("Segment delay cannot be negative")
        if self.min_recording_bytes < 0:
            raise ConfigurationError("Minimum recording size cannot be negative")

    @classmethod
    def from_config(cls, language: Optional[str] = None, output_dir: Optional[str] = None) -> "PipelineSettings":
        """Build settings from environment and defaults, applying explicit overrides."""
        return cls(
            upload_limit_bytes=int(ConfigManager.get_float("UPLOAD_LIMIT_MB") * MIB),
            segment_seconds=ConfigManager.get_float("SEGMENT_MINUTES") * 60,
            segment_delay_seconds=ConfigManager.get_float("SEGMENT_DELAY_SECONDS"),
            mp3_bitrate=str(ConfigManager.get("MP3_BITRATE")),
            min_recording_bytes=ConfigManager.get_int("MIN_RECORDING_BYTES"),
            compress_before_upload=ConfigManager.get_bool("COMPRESS_BEFORE_UPLOAD"),
            scratch_dir=ConfigManager.get("SCRATCH_DIR") or None,
            output_dir=str(ConfigManager.get("OUTPUT_DIR", output_dir)),
            language=str(ConfigManager.get("RECORDING_LANGUAGE", language)).lower(),
        )


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging from LOG_LEVEL."""
    log_level = str(ConfigManager.get("LOG_LEVEL", level)).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
