"""Configuration management for jarbackup.

This module provides dataclasses for configuration and functions for
parsing/formatting TOML configuration files.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import tomllib


class ConfigurationError(Exception):
    """Raised when configuration file is missing or malformed."""
    pass


class ValidationError(Exception):
    """Raised when configuration values have invalid types."""
    pass


@dataclass
class RestoreConfig:
    """Configuration for restore behavior."""
    overwrite: bool = True  # Replace files already present at the destination
    apply_ownership: bool = True  # chown restored paths to the recorded uid/gid


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"  # "DEBUG", "INFO", "ERROR"
    log_file: Path = field(
        default_factory=lambda: Path.home() / ".local/log/jarbackup.log"
    )
    error_log_file: Path = field(
        default_factory=lambda: Path.home() / ".local/log/jarbackup.err"
    )
    log_max_size_mb: int = 10  # Maximum log file size in MB before rotation
    log_backup_count: int = 5  # Number of rotated log files to keep

    @property
    def log_max_bytes(self) -> int:
        """Return max size in bytes for use with RotatingFileHandler."""
        return self.log_max_size_mb * 1024 * 1024


@dataclass
class Configuration:
    """Main configuration for jarbackup."""
    backup_root: Path
    restore: RestoreConfig = field(default_factory=RestoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Default config file path
DEFAULT_CONFIG_PATH = Path.home() / ".config/jarbackup/config.toml"

# Required keys in configuration
REQUIRED_KEYS = ["backup_root"]


def _validate_type(value: Any, expected_type: type, key: str) -> None:
    """Validate that a value has the expected type."""
    if not isinstance(value, expected_type):
        raise ValidationError(
            f"Key '{key}' has invalid type: expected {expected_type.__name__}, "
            f"got {type(value).__name__}"
        )


def _parse_restore_config(data: Dict[str, Any]) -> RestoreConfig:
    """Parse restore configuration from dict."""
    restore_data = data.get("restore", {})

    overwrite = restore_data.get("overwrite", True)
    _validate_type(overwrite, bool, "restore.overwrite")

    apply_ownership = restore_data.get("apply_ownership", True)
    _validate_type(apply_ownership, bool, "restore.apply_ownership")

    return RestoreConfig(overwrite=overwrite, apply_ownership=apply_ownership)


def _parse_logging_config(data: Dict[str, Any]) -> LoggingConfig:
    """Parse logging configuration from dict."""
    logging_data = data.get("logging", {})

    level = logging_data.get("level", "INFO")
    _validate_type(level, str, "logging.level")

    log_file = logging_data.get(
        "log_file",
        str(Path.home() / ".local/log/jarbackup.log")
    )
    _validate_type(log_file, str, "logging.log_file")

    error_log_file = logging_data.get(
        "error_log_file",
        str(Path.home() / ".local/log/jarbackup.err")
    )
    _validate_type(error_log_file, str, "logging.error_log_file")

    log_max_size_mb = logging_data.get("log_max_size_mb", 10)
    _validate_type(log_max_size_mb, int, "logging.log_max_size_mb")

    log_backup_count = logging_data.get("log_backup_count", 5)
    _validate_type(log_backup_count, int, "logging.log_backup_count")

    return LoggingConfig(
        level=level,
        log_file=Path(log_file),
        error_log_file=Path(error_log_file),
        log_max_size_mb=log_max_size_mb,
        log_backup_count=log_backup_count,
    )


def parse_config_string(toml_content: str) -> Configuration:
    """
    Parse TOML string into Configuration object.

    Args:
        toml_content: TOML formatted string

    Returns:
        Configuration object

    Raises:
        ConfigurationError: If required key is missing
        ValidationError: If value has wrong type
    """
    try:
        data = tomllib.loads(toml_content)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML format: {e}")

    # Get main section (may be nested under [main] or at root)
    main_data = data.get("main", data)

    for key in REQUIRED_KEYS:
        if key not in main_data:
            raise ConfigurationError(f"Missing required configuration key: '{key}'")

    backup_root = main_data["backup_root"]
    _validate_type(backup_root, str, "backup_root")

    return Configuration(
        backup_root=Path(backup_root),
        restore=_parse_restore_config(data),
        logging=_parse_logging_config(data),
    )


def parse_config(config_path: Optional[Path] = None) -> Configuration:
    """
    Parse TOML configuration file into Configuration object.

    Args:
        config_path: Path to config file. Defaults to ~/.config/jarbackup/config.toml

    Returns:
        Configuration object

    Raises:
        ConfigurationError: If file doesn't exist or required key missing
        ValidationError: If value has wrong type
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}"
        )

    try:
        content = config_path.read_text()
    except PermissionError:
        raise ConfigurationError(
            f"Permission denied reading configuration file: {config_path}"
        )
    except OSError as e:
        raise ConfigurationError(
            f"Error reading configuration file {config_path}: {e}"
        )

    return parse_config_string(content)


def _escape_toml_string(s: str) -> str:
    """Escape a string for TOML basic string format."""
    # Must escape backslashes first, then quotes
    return s.replace("\\", "\\\\").replace('"', '\\"')


def _toml_bool(value: bool) -> str:
    return "true" if value else "false"


def format_config(config: Configuration) -> str:
    """
    Format Configuration object back to TOML string.

    Args:
        config: Configuration object to format

    Returns:
        TOML formatted string
    """
    lines = []

    lines.append("[main]")
    lines.append(f'backup_root = "{_escape_toml_string(str(config.backup_root))}"')
    lines.append("")

    lines.append("[restore]")
    lines.append(f"overwrite = {_toml_bool(config.restore.overwrite)}")
    lines.append(f"apply_ownership = {_toml_bool(config.restore.apply_ownership)}")
    lines.append("")

    lines.append("[logging]")
    lines.append(f'level = "{_escape_toml_string(config.logging.level)}"')
    lines.append(f'log_file = "{_escape_toml_string(str(config.logging.log_file))}"')
    lines.append(f'error_log_file = "{_escape_toml_string(str(config.logging.error_log_file))}"')
    lines.append(f"log_max_size_mb = {config.logging.log_max_size_mb}")
    lines.append(f"log_backup_count = {config.logging.log_backup_count}")

    return "\n".join(lines)


def create_default_config() -> str:
    """
    Generate default configuration TOML for `jarbackup init`.

    Returns:
        TOML formatted string with default configuration
    """
    return '''# jarbackup configuration file

[main]
# Directory holding one sub-directory per jar
backup_root = "/var/backups/jars"

[restore]
# Replace files that already exist at the restore destination
overwrite = true
# Restore owner and group (usually requires root)
apply_ownership = true

[logging]
# Log level: DEBUG, INFO, ERROR
level = "INFO"
log_file = "~/.local/log/jarbackup.log"
error_log_file = "~/.local/log/jarbackup.err"
# Log rotation settings
log_max_size_mb = 10
log_backup_count = 5
'''
