# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
s3backup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation to prevent
accidental modification during a run.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List
import re

from s3backup.lifecycle.retention import RetentionPolicy, RetentionScope


def _validate_bucket_name(bucket: str) -> bool:
    """
    Validate S3 bucket name according to AWS rules.

    Rules:
    - 3-63 characters
    - Lowercase letters, numbers, hyphens
    - Must start and end with letter or number
    - No consecutive periods
    - Not formatted as IP address
    """
    if not bucket or len(bucket) < 3 or len(bucket) > 63:
        return False

    # Must be lowercase letters, numbers, hyphens, or periods
    if not re.match(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$", bucket):
        return False

    # No consecutive periods
    if ".." in bucket:
        return False

    # Not IP address format
    if re.match(r"^\d+\.\d+\.\d+\.\d+$", bucket):
        return False

    return True


def _raise_if_errors(message: str, errors: List[str]) -> None:
    if errors:
        from s3backup.exceptions import ConfigurationError

        raise ConfigurationError(message, details={"errors": errors})


@dataclass(frozen=True)
class S3Settings:
    """Object store location and credentials."""

    bucket: str
    region: str = "us-east-1"

    # Custom endpoint for S3-compatible stores (MinIO, etc.)
    endpoint: str | None = None

    # Static credentials; None falls back to the default AWS chain
    access_key_id: str | None = None
    secret_access_key: str | None = None

    # Key prefix under which artifacts are stored
    prefix: str = ""

    def __post_init__(self) -> None:
        errors: List[str] = []
        if not _validate_bucket_name(self.bucket):
            errors.append(f"Invalid bucket name: {self.bucket}")
        if bool(self.access_key_id) != bool(self.secret_access_key):
            errors.append("access_key_id and secret_access_key must be set together")
        _raise_if_errors("Invalid S3 settings", errors)


@dataclass(frozen=True)
class BackupJob:
    """One logical backup: a named set of folders archived together."""

    name: str
    folders: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        errors: List[str] = []
        if not self.name or "/" in self.name:
            errors.append(f"Invalid backup name: {self.name!r}")
        if not self.folders:
            errors.append(f"Backup {self.name!r} has no folders")
        _raise_if_errors("Invalid backup job", errors)


@dataclass(frozen=True)
class EncryptionSettings:
    """Symmetric GPG encryption of archives before upload."""

    enabled: bool = False
    passphrase: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.enabled and not self.passphrase:
            from s3backup.errors import explain_missing_passphrase

            _raise_if_errors("Invalid encryption settings", [explain_missing_passphrase()])


@dataclass(frozen=True)
class TelegramSettings:
    """Telegram chat notifications sent after each backup run."""

    enabled: bool = False
    bot_token: str | None = field(default=None, repr=False)
    chat_id: str | None = None


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for the backup service.

    Frozen after creation so a run cannot modify it halfway through.
    """

    s3: S3Settings

    backups: List[BackupJob] = field(default_factory=list)

    encryption: EncryptionSettings = field(default_factory=EncryptionSettings)

    retention: RetentionPolicy = field(default_factory=RetentionPolicy)

    telegram: TelegramSettings = field(default_factory=TelegramSettings)

    # Directory holding tar incremental state files (<name>.snar)
    state_dir: Path = field(default_factory=lambda: Path("./s3backup_state"))

    # Scratch directory for archives; None uses the system temp dir
    temp_dir: Path | None = None

    # Maximum concurrent delete operations during rotation
    max_concurrent_ops: int = 10

    # Stop starting new deletions/downloads after this many seconds
    operation_timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        names = [job.name for job in self.backups]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            errors.append(f"Duplicate backup names: {', '.join(duplicates)}")

        if self.max_concurrent_ops < 1:
            errors.append(f"max_concurrent_ops must be >= 1, got {self.max_concurrent_ops}")

        if self.operation_timeout_seconds is not None and self.operation_timeout_seconds <= 0:
            errors.append(
                f"operation_timeout_seconds must be > 0, got {self.operation_timeout_seconds}"
            )

        _raise_if_errors("Configuration validation failed", errors)

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        return replace(self, **kwargs)


__all__ = [
    "BackupConfig",
    "BackupJob",
    "EncryptionSettings",
    "RetentionPolicy",
    "RetentionScope",
    "S3Settings",
    "TelegramSettings",
]
