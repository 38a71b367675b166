"""
Configuration management for grml-changelog.

Settings are layered: built-in defaults, then a TOML or JSON config file, then
environment variables, then command line options. The result is an immutable
ChangelogConfig that is passed explicitly to every operation.
"""

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from rich.console import Console

from .error_handling import ConfigurationError

console = Console(stderr=True)

DEFAULT_OUTPUT_FILENAME = "changelog.txt"
DEFAULT_OLD_LIST_NAME = "dpkg.list.old"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
EMPTY_PREFIX_WARNING = "package_prefix is empty: every package is tracked and looked up in git"


@dataclass(frozen=True)
class ChangelogConfig:
    """Settings for a changelog run."""

    output_filename: str = DEFAULT_OUTPUT_FILENAME
    old_list_name: str = DEFAULT_OLD_LIST_NAME
    package_prefix: str = ""
    git_url_base: str = ""
    command_timeout_seconds: int = 600
    log_level: str = "WARNING"

    def __post_init__(self):
        # Blank names from build job forms fall back to the defaults
        if not self.output_filename:
            object.__setattr__(self, "output_filename", DEFAULT_OUTPUT_FILENAME)
        if not self.old_list_name:
            object.__setattr__(self, "old_list_name", DEFAULT_OLD_LIST_NAME)

    def with_overrides(self, **overrides: Any) -> "ChangelogConfig":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


ENVIRONMENT_VARIABLES = {
    "GRML_CHANGELOG_OUTPUT": "output_filename",
    "GRML_CHANGELOG_OLD_LIST": "old_list_name",
    "GRML_CHANGELOG_PACKAGE_PREFIX": "package_prefix",
    "GRML_CHANGELOG_GIT_URL_BASE": "git_url_base",
    "GRML_CHANGELOG_TIMEOUT": "command_timeout_seconds",
    "GRML_CHANGELOG_LOG_LEVEL": "log_level",
}


def validate_config_values(config: ChangelogConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if config.command_timeout_seconds <= 0:
        errors.append("command_timeout_seconds must be positive")
    if config.log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}")
    for name in ("output_filename", "old_list_name"):
        value = getattr(config, name)
        if Path(value).is_absolute() or ".." in Path(value).parts:
            errors.append(f"{name} must be a path relative to the workspace")

    return errors


def config_warnings(config: ChangelogConfig) -> List[str]:
    """Return settings that are valid but probably not intended."""
    warnings = []
    if not config.package_prefix:
        warnings.append(EMPTY_PREFIX_WARNING)
    if not config.git_url_base:
        warnings.append("git_url_base is empty: tracked packages cannot be fetched")
    return warnings


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """
    Load a TOML or JSON config file.

    Returns None if the file does not exist.

    Raises:
        ConfigurationError: if the file cannot be read or parsed
    """
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = toml.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Error loading config from {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a table")

    # Settings may live at the top level or in a [changelog] table
    return data.get("changelog", data)


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".grml-changelog.toml",
        Path.cwd() / ".grml-changelog.json",
        Path.home() / ".config" / "grml-changelog" / "config.toml",
        Path.home() / ".config" / "grml-changelog" / "config.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def apply_config_section(
    config: ChangelogConfig, section_data: Dict[str, Any], source: str
) -> ChangelogConfig:
    """Apply known keys from a dictionary, warning about unknown ones."""
    known = {f.name for f in fields(ChangelogConfig)}
    changes: Dict[str, Any] = {}
    for key, value in section_data.items():
        if key not in known:
            console.print(f"⚠️  Unknown config key in {source}: {key}", style="yellow")
            continue
        if key == "command_timeout_seconds":
            try:
                value = int(value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Invalid integer value for {key} in {source}: {value!r}"
                ) from e
        elif value is not None:
            value = str(value)
        changes[key] = value
    return config.with_overrides(**changes)


def load_environment_overrides(config: ChangelogConfig) -> ChangelogConfig:
    """Apply GRML_CHANGELOG_* environment variables."""
    env_values = {
        key: os.environ[env_name]
        for env_name, key in ENVIRONMENT_VARIABLES.items()
        if env_name in os.environ
    }
    if not env_values:
        return config
    return apply_config_section(config, env_values, "environment")


def load_config(config_path: Optional[Path] = None, **overrides: Any) -> ChangelogConfig:
    """
    Load configuration from file, environment and explicit overrides.

    Args:
        config_path: Explicit config file; standard locations are searched if None
        **overrides: Values from the command line, None meaning "not given"

    Raises:
        ConfigurationError: if the file is unreadable or the result is invalid
    """
    config = ChangelogConfig()

    if config_path is not None and not config_path.exists():
        raise ConfigurationError(f"Config file does not exist: {config_path}")

    config_file = config_path or find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            config = apply_config_section(config, file_config, str(config_file))

    config = load_environment_overrides(config)
    config = config.with_overrides(**overrides)

    validation_errors = validate_config_values(config)
    if validation_errors:
        raise ConfigurationError(
            "Configuration validation errors: " + "; ".join(validation_errors)
        )

    return config


def create_sample_config() -> str:
    """Generate a sample TOML configuration."""
    sample_config = {
        "changelog": {
            "output_filename": DEFAULT_OUTPUT_FILENAME,
            "old_list_name": DEFAULT_OLD_LIST_NAME,
            "package_prefix": "grml-",
            "git_url_base": "git://git.grml.org",
            "command_timeout_seconds": 600,
            "log_level": "WARNING",
        }
    }
    return toml.dumps(sample_config)
