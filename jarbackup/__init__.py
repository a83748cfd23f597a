"""jarbackup - Restore engine for deduplicated snapshot/diff backups."""

__version__ = "0.1.0"

from jarbackup.errors import (
    JarBackupError,
    StorageIOError,
    BlobNotFound,
    MalformedIndex,
    InvalidVersionLayout,
    InvalidTimestampReference,
    PermissionApplyError,
)
from jarbackup.version import (
    Snapshot,
    Diff,
    Version,
    locate_version,
    generate_timestamp,
    parse_timestamp,
)
from jarbackup.selector import (
    list_versions,
    last_version,
    diff_versions,
    has_diffs,
    last_version_from_list,
    latest_diff_in_window,
    list_jars,
    jar_versions,
)
from jarbackup.encryption import (
    EncryptionError,
    DecryptionError,
    BlobCipher,
    encrypt,
    decrypt,
)
from jarbackup.cas import ContentStore, compute_checksum
from jarbackup.index import IndexEntry, SnapshotIndex
from jarbackup.resolver import ResolvedContent, VersionChainResolver
from jarbackup.restore import (
    EntryFailure,
    FailureKind,
    RestoreEngine,
    RestoreReport,
    apply_permissions,
    restore_backup_to,
)
from jarbackup.verify import ChainVerifier, VerificationResult
from jarbackup.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    parse_config,
    format_config,
    create_default_config,
)
from jarbackup.logger import (
    LoggingError,
    setup_logging,
    get_logger,
)

__all__ = [
    "JarBackupError",
    "StorageIOError",
    "BlobNotFound",
    "MalformedIndex",
    "InvalidVersionLayout",
    "InvalidTimestampReference",
    "PermissionApplyError",
    "Snapshot",
    "Diff",
    "Version",
    "locate_version",
    "generate_timestamp",
    "parse_timestamp",
    "list_versions",
    "last_version",
    "diff_versions",
    "has_diffs",
    "last_version_from_list",
    "latest_diff_in_window",
    "list_jars",
    "jar_versions",
    "EncryptionError",
    "DecryptionError",
    "BlobCipher",
    "encrypt",
    "decrypt",
    "ContentStore",
    "compute_checksum",
    "IndexEntry",
    "SnapshotIndex",
    "ResolvedContent",
    "VersionChainResolver",
    "EntryFailure",
    "FailureKind",
    "RestoreEngine",
    "RestoreReport",
    "apply_permissions",
    "restore_backup_to",
    "ChainVerifier",
    "VerificationResult",
    "Configuration",
    "ConfigurationError",
    "ValidationError",
    "parse_config",
    "format_config",
    "create_default_config",
    "LoggingError",
    "setup_logging",
    "get_logger",
]
