"""Configuration for face-label-export."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Default configuration for end-users
DEFAULT_EXIFTOOL_APP = "exiftool"
DEFAULT_IMAGEMAGICK_APP = "magick"
DEFAULT_VERBOSITY = 2  # 0 is errors only; 2 is normally sensible; 5 for everything
DEFAULT_RESPONSE_TIMEOUT = 5.0  # seconds to wait for each exiftool response

# Configuration file path
CONFIG_FILE_PATH = Path.home() / ".face-label-export" / "config.json"

# Helper application paths can be overridden from the environment
ENV_EXIFTOOL_APP = "FLE_EXIFTOOL_APP"
ENV_IMAGEMAGICK_APP = "FLE_IMAGEMAGICK_APP"

# Label drawing defaults, not exposed on the command line
LABEL_DEFAULTS: Dict[str, Any] = {
    "label_image": True,
    "draw_face_outlines": False,
    "draw_label_text": True,
    "obfuscate_labels": False,
    "obfuscate_image": False,
    "remove_exif": False,
    "crop_image": False,
    "font_type": "Courier",
    "font_size": 40,
    "font_colour": "white",
    "label_undercolour": "#00000080",
    "face_outline_colour": "blue",
    "face_outline_line_width": 2,
    "image_margin": 5,
}


def verbosity_to_log_level(verbosity: int) -> int:
    """Map the 0..5 diagnostic verbosity onto a logging level."""
    if verbosity <= 0:
        return logging.ERROR
    if verbosity == 1:
        return logging.WARNING
    if verbosity == 2:
        return logging.INFO
    return logging.DEBUG


class ExportConfig:
    """Configuration for an export run: helper apps, diagnostics and label options."""

    def __init__(
        self,
        exiftool_app: Optional[str] = None,
        exiftool_config_file: Optional[str] = None,
        imagemagick_app: Optional[str] = None,
        delete_logs: Optional[bool] = None,
        verbosity: Optional[int] = None,
        response_timeout: Optional[float] = None,
        scratch_dir: Optional[str] = None,
        **label_options: Any,
    ):
        self.exiftool_app = exiftool_app or os.environ.get(ENV_EXIFTOOL_APP) or DEFAULT_EXIFTOOL_APP
        self.imagemagick_app = (
            imagemagick_app or os.environ.get(ENV_IMAGEMAGICK_APP) or DEFAULT_IMAGEMAGICK_APP
        )
        # Expand ~ in file paths if present
        self.exiftool_config_file = (
            os.path.expanduser(exiftool_config_file) if exiftool_config_file else None
        )
        self.scratch_dir = os.path.expanduser(scratch_dir) if scratch_dir else None
        self.delete_logs = True if delete_logs is None else bool(delete_logs)
        self.verbosity = DEFAULT_VERBOSITY if verbosity is None else int(verbosity)
        self.response_timeout = (
            DEFAULT_RESPONSE_TIMEOUT if response_timeout is None else float(response_timeout)
        )
        if self.response_timeout <= 0:
            raise ValueError(f"response_timeout must be positive, got {self.response_timeout}")

        unknown = set(label_options) - set(LABEL_DEFAULTS)
        if unknown:
            raise ValueError(f"Unknown label options: {', '.join(sorted(unknown))}")
        for key, default in LABEL_DEFAULTS.items():
            value = label_options.get(key)
            setattr(self, key, default if value is None else value)

    @property
    def log_level(self) -> int:
        return verbosity_to_log_level(self.verbosity)

    @classmethod
    def load_from_file(cls, config_path: Optional[Path] = None) -> "ExportConfig":
        """Load configuration from JSON file."""
        if config_path is None:
            config_path = CONFIG_FILE_PATH
        config_path = Path(config_path)

        if not config_path.exists():
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            # If config file is invalid, log warning and use defaults
            logger.warning(f"Failed to load config file {config_path}: {e}")
            return cls()

        if not isinstance(config_data, dict):
            logger.warning(f"Ignoring config file {config_path}: expected a JSON object")
            return cls()

        known = {key: value for key, value in config_data.items() if key in cls._field_names()}
        ignored = sorted(set(config_data) - set(known))
        if ignored:
            logger.warning(f"Ignoring unknown config keys in {config_path}: {', '.join(ignored)}")
        return cls(**known)

    def save_to_file(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to JSON file."""
        if config_path is None:
            config_path = CONFIG_FILE_PATH
        config_path = Path(config_path)

        # Ensure config directory exists
        config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        except IOError as e:
            logger.error(f"Failed to save config file {config_path}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        data: Dict[str, Any] = {
            "exiftool_app": self.exiftool_app,
            "exiftool_config_file": self.exiftool_config_file,
            "imagemagick_app": self.imagemagick_app,
            "delete_logs": self.delete_logs,
            "verbosity": self.verbosity,
            "response_timeout": self.response_timeout,
            "scratch_dir": self.scratch_dir,
        }
        for key in LABEL_DEFAULTS:
            data[key] = getattr(self, key)
        return data

    @classmethod
    def _field_names(cls) -> set:
        return {
            "exiftool_app",
            "exiftool_config_file",
            "imagemagick_app",
            "delete_logs",
            "verbosity",
            "response_timeout",
            "scratch_dir",
        } | set(LABEL_DEFAULTS)
