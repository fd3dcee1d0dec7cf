# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
S3 Backup Exceptions - Custom exceptions for the s3backup package.
"""


class S3BackupError(Exception):
    """Base exception for all s3backup errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(S3BackupError):
    """Raised when configuration is invalid."""

    pass


class StorageError(S3BackupError):
    """Raised when object store operations fail."""

    pass


class ListingUnavailableError(StorageError):
    """Raised when the artifact listing cannot be fetched."""

    pass


class ArchiveError(S3BackupError):
    """Raised when archive creation or extraction fails."""

    pass


class CipherError(S3BackupError):
    """Raised when encryption or decryption fails."""

    pass


class RestoreError(S3BackupError):
    """Raised when a restore run is aborted."""

    pass


class ChainNotFoundError(S3BackupError):
    """Raised when no full backup anchors the requested restore point."""

    def __init__(self, key: str, reason: str = "no full backup precedes target"):
        self.key = key
        super().__init__(
            f"No backup chain found for {key!r}",
            details={"key": key, "reason": reason},
        )
