"""Logging configuration for jarbackup.

This module provides logging setup and utility functions for the restore
engine. Supports DEBUG, INFO, and ERROR log levels with separate log and
error files, automatic log rotation with gzip compression, and error codes
with troubleshooting guidance for structured diagnostics.
"""

import gzip
import json
import logging
import os
import shutil
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from jarbackup.config import ConfigurationError, LoggingConfig, ValidationError
from jarbackup.errors import (
    BlobNotFound,
    InvalidTimestampReference,
    InvalidVersionLayout,
    MalformedIndex,
    PermissionApplyError,
    StorageIOError,
)


# Logger name for the jarbackup package
LOGGER_NAME = "jarbackup"

# Default rotation settings
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5

# Valid log levels
VALID_LOG_LEVELS = {"DEBUG", "INFO", "ERROR"}


class ErrorCode(Enum):
    """Error codes for structured logging and troubleshooting."""
    # Storage errors (1xxx)
    STORAGE_IO_FAILED = "E1001"
    STORAGE_BLOB_MISSING = "E1002"

    # Index errors (2xxx)
    INDEX_MALFORMED = "E2001"
    INDEX_LAYOUT_INVALID = "E2002"

    # Restore entry errors (3xxx)
    RESTORE_INVALID_TIMESTAMP = "E3001"
    RESTORE_PERMISSION_APPLY = "E3002"
    RESTORE_INVALID_PATH = "E3003"
    RESTORE_FILE_EXISTS = "E3004"

    # Configuration errors (4xxx)
    CONFIG_INVALID = "E4001"

    # General errors (0xxx)
    UNKNOWN_ERROR = "E0001"


# Troubleshooting guidance for each error code
ERROR_GUIDANCE: Dict[ErrorCode, str] = {
    ErrorCode.STORAGE_IO_FAILED: "Reading the backup or writing the restore destination failed. Check that the backup drive is mounted, and check free space and folder permissions.",
    ErrorCode.STORAGE_BLOB_MISSING: "Content referenced by the index is missing from the jar. The backup may be incomplete.",

    ErrorCode.INDEX_MALFORMED: "The version index could not be parsed. The backup may be corrupt.",
    ErrorCode.INDEX_LAYOUT_INVALID: "The path is not a snapshot or diff directory. Pass <jar>/<timestamp> or <jar>/<timestamp>/diff/<timestamp>.",

    ErrorCode.RESTORE_INVALID_TIMESTAMP: "An index entry points at a version that is not part of this jar. The index is inconsistent with the jar.",
    ErrorCode.RESTORE_PERMISSION_APPLY: "Mode or ownership could not be restored. Run the restore as root to restore ownership.",
    ErrorCode.RESTORE_INVALID_PATH: "An index entry has an absolute path or escapes the restore destination and was skipped.",
    ErrorCode.RESTORE_FILE_EXISTS: "A file already exists at the destination and overwriting is disabled.",

    ErrorCode.CONFIG_INVALID: "The configuration file is invalid. Run jarbackup init to create a fresh one.",

    ErrorCode.UNKNOWN_ERROR: "An unexpected error occurred. Check the logs for more details.",
}

# Per-entry failure kinds (RestoreReport) mapped to error codes
FAILURE_KIND_CODES: Dict[str, ErrorCode] = {
    "permission_apply": ErrorCode.RESTORE_PERMISSION_APPLY,
    "invalid_timestamp_reference": ErrorCode.RESTORE_INVALID_TIMESTAMP,
    "invalid_path": ErrorCode.RESTORE_INVALID_PATH,
    "file_exists": ErrorCode.RESTORE_FILE_EXISTS,
}


@dataclass
class StructuredLogEntry:
    """
    A structured log entry that diagnostic tools can parse back.

    Contains:
    - timestamp: ISO 8601 formatted timestamp
    - level: Severity level
    - error_code: Error code from ErrorCode enum (for errors/warnings)
    - message: Human-readable message
    - context: Additional context information
    - guidance: Troubleshooting guidance (for errors/warnings)
    """
    timestamp: str
    level: str
    message: str
    error_code: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    guidance: Optional[str] = None

    def to_json(self) -> str:
        """Serialize to JSON string for logging."""
        data = {k: v for k, v in asdict(self).items() if v is not None}
        return json.dumps(data, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "StructuredLogEntry":
        """Parse from JSON string."""
        data = json.loads(json_str)
        return cls(**data)

    @classmethod
    def create(
        cls,
        level: str,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> "StructuredLogEntry":
        """Create a structured log entry with automatic timestamp and guidance."""
        return cls(
            timestamp=datetime.now().isoformat(),
            level=level,
            message=message,
            error_code=error_code.value if error_code else None,
            context=context,
            guidance=ERROR_GUIDANCE.get(error_code) if error_code else None,
        )


def get_error_guidance(error_code: ErrorCode) -> str:
    """Get troubleshooting guidance for an error code."""
    return ERROR_GUIDANCE.get(error_code, ERROR_GUIDANCE[ErrorCode.UNKNOWN_ERROR])


class LoggingError(Exception):
    """Raised when logging setup fails."""
    pass


class GzipRotatingFileHandler(RotatingFileHandler):
    """
    Rotating file handler that compresses rotated files with gzip.

    Rotated files are named with a .gz extension.
    """

    def rotation_filename(self, default_name: str) -> str:
        return default_name + ".gz"

    def rotate(self, source: str, dest: str) -> None:
        """
        Rotate and compress the log file.

        If compression fails the file is renamed without compression.
        """
        if not os.path.exists(source):
            return

        try:
            with open(source, 'rb') as f_in:
                with gzip.open(dest, 'wb') as f_out:
                    shutil.copyfileobj(f_in, f_out)
            os.remove(source)
        except OSError:
            if os.path.exists(source):
                fallback_dest = dest[:-3] if dest.endswith('.gz') else dest
                os.rename(source, fallback_dest)


def _ensure_log_directory(log_path: Path) -> None:
    """Ensure the parent directory for a log file exists."""
    log_dir = log_path.parent
    if not log_dir.exists():
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LoggingError(f"Failed to create log directory {log_dir}: {e}")


def _get_log_level(level_str: str) -> int:
    """Convert log level string to logging constant."""
    level_str = level_str.upper()
    if level_str not in VALID_LOG_LEVELS:
        raise LoggingError(
            f"Invalid log level '{level_str}'. Must be one of: {', '.join(sorted(VALID_LOG_LEVELS))}"
        )
    return getattr(logging, level_str)


def setup_logging(
    config: Optional[LoggingConfig] = None,
    log_file: Optional[Path] = None,
    error_log_file: Optional[Path] = None,
    level: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
) -> logging.Logger:
    """
    Configure logging for jarbackup.

    Sets up logging with:
    - A rotating file handler for general logs (log_file)
    - A rotating file handler for error logs only (error_log_file)
    - Console output for immediate feedback
    - Automatic gzip compression of rotated files

    Args:
        config: LoggingConfig object with settings. If provided, other args are ignored.
        log_file: Path to main log file (used if config is None)
        error_log_file: Path to error log file (used if config is None)
        level: Log level string: "DEBUG", "INFO", or "ERROR" (used if config is None)
        max_bytes: Maximum log file size before rotation (default 10MB)
        backup_count: Number of rotated files to keep (default 5)

    Returns:
        Configured logger instance

    Raises:
        LoggingError: If log directory cannot be created or level is invalid
    """
    if config is not None:
        log_file = config.log_file
        error_log_file = config.error_log_file
        level = config.level
        if max_bytes is None:
            max_bytes = config.log_max_bytes
        if backup_count is None:
            backup_count = config.log_backup_count
    else:
        if log_file is None:
            log_file = Path.home() / ".local/log/jarbackup.log"
        if error_log_file is None:
            error_log_file = Path.home() / ".local/log/jarbackup.err"
        if level is None:
            level = "INFO"
        if max_bytes is None:
            max_bytes = DEFAULT_MAX_BYTES
        if backup_count is None:
            backup_count = DEFAULT_BACKUP_COUNT

    # Expand ~ in paths
    log_file = Path(os.path.expanduser(str(log_file)))
    error_log_file = Path(os.path.expanduser(str(error_log_file)))

    _ensure_log_directory(log_file)
    _ensure_log_directory(error_log_file)

    log_level = _get_log_level(level)

    logger = logging.getLogger(LOGGER_NAME)

    # Clear any existing handlers to avoid duplicates
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG)  # Handlers filter

    detailed_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    file_handler = GzipRotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(detailed_formatter)
    logger.addHandler(file_handler)

    error_handler = GzipRotatingFileHandler(
        error_log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(detailed_formatter)
    logger.addHandler(error_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(detailed_formatter)
    logger.addHandler(console_handler)

    return logger


def get_logger() -> logging.Logger:
    """
    Get the jarbackup logger instance.

    Returns:
        The jarbackup logger. If setup_logging hasn't been called,
        returns a logger with default configuration.
    """
    return logging.getLogger(LOGGER_NAME)


def log_restore_start(
    logger: logging.Logger,
    version: Any,
    jar_root: Path,
    destination: Path,
) -> None:
    """Log the start of a restore operation."""
    logger.info(f"Restore of {version} started")
    logger.info(f"Jar: {jar_root}")
    logger.info(f"Destination: {destination}")


def log_restore_completion(logger: logging.Logger, report: Any) -> None:
    """
    Log the outcome of a restore operation.

    Args:
        logger: Logger instance
        report: RestoreReport of the finished restore
    """
    if report.failures:
        logger.warning(
            f"Restore of {report.version} completed with "
            f"{len(report.failures)} entry failure(s)"
        )
    else:
        logger.info(f"Restore of {report.version} completed successfully")
    logger.info(f"Entries processed: {report.entries_processed}")
    logger.info(f"Files restored: {report.files_restored}")
    logger.info(f"Duration: {report.duration_seconds:.2f} seconds")


def log_entry_failure(logger: logging.Logger, failure: Any) -> None:
    """
    Log a per-entry restore failure as a structured warning.

    Args:
        logger: Logger instance
        failure: EntryFailure recorded by the restore engine
    """
    error_code = FAILURE_KIND_CODES.get(failure.kind.value, ErrorCode.UNKNOWN_ERROR)
    log_structured(
        logger,
        logging.WARNING,
        failure.message,
        error_code=error_code,
        context={"path": failure.path, "kind": failure.kind.value},
    )


def log_structured(
    logger: logging.Logger,
    level: int,
    message: str,
    error_code: Optional[ErrorCode] = None,
    context: Optional[Dict[str, Any]] = None,
) -> StructuredLogEntry:
    """
    Log a structured message as a JSON line.

    Returns:
        The StructuredLogEntry that was logged
    """
    entry = StructuredLogEntry.create(
        level=logging.getLevelName(level),
        message=message,
        error_code=error_code,
        context=context,
    )
    logger.log(level, entry.to_json())
    return entry


def map_exception_to_error_code(exception: Exception) -> ErrorCode:
    """Map an exception to the error code used when reporting it."""
    if isinstance(exception, BlobNotFound):
        return ErrorCode.STORAGE_BLOB_MISSING
    if isinstance(exception, StorageIOError):
        return ErrorCode.STORAGE_IO_FAILED
    if isinstance(exception, MalformedIndex):
        return ErrorCode.INDEX_MALFORMED
    if isinstance(exception, InvalidVersionLayout):
        return ErrorCode.INDEX_LAYOUT_INVALID
    if isinstance(exception, InvalidTimestampReference):
        return ErrorCode.RESTORE_INVALID_TIMESTAMP
    if isinstance(exception, PermissionApplyError):
        return ErrorCode.RESTORE_PERMISSION_APPLY
    if isinstance(exception, (ConfigurationError, ValidationError)):
        return ErrorCode.CONFIG_INVALID
    return ErrorCode.UNKNOWN_ERROR
