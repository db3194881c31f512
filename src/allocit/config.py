"""Configuration management for allocit.

Reads optional settings from ~/.config/allocit.toml; ALLOCIT_* environment
variables override the file.
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Config:
    """Application configuration."""

    db_path: Path
    log_level: str
    log_dir: Optional[Path]
    case_sensitive: bool

    @classmethod
    def default(cls) -> "Config":
        """Create a Config with default values."""
        return cls(
            db_path=Path.home() / ".allocit" / "allocit.db",
            log_level="WARNING",
            log_dir=None,
            case_sensitive=True,
        )


def get_config_path() -> Path:
    """Get the path to the config file."""
    return Path.home() / ".config" / "allocit.toml"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Optional config file path (defaults to ~/.config/allocit.toml)

    Returns:
        Config object with loaded or default values.
    """
    config = Config.default()
    config_path = config_path or get_config_path()

    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        db_config = data.get("database", {})
        if "path" in db_config:
            config.db_path = Path(db_config["path"]).expanduser()

        log_config = data.get("logging", {})
        config.log_level = log_config.get("level", config.log_level)
        if "log_dir" in log_config:
            config.log_dir = Path(log_config["log_dir"]).expanduser()

        matching_config = data.get("matching", {})
        case_sensitive = matching_config.get("case_sensitive", config.case_sensitive)
        if isinstance(case_sensitive, str):
            case_sensitive = _parse_bool(case_sensitive)
        config.case_sensitive = bool(case_sensitive)

    if os.environ.get("ALLOCIT_DB_PATH"):
        config.db_path = Path(os.environ["ALLOCIT_DB_PATH"])
    if os.environ.get("ALLOCIT_LOG_LEVEL"):
        config.log_level = os.environ["ALLOCIT_LOG_LEVEL"]
    if os.environ.get("ALLOCIT_CASE_SENSITIVE"):
        config.case_sensitive = _parse_bool(os.environ["ALLOCIT_CASE_SENSITIVE"])

    return config
