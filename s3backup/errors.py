# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for s3backup.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_config_file(path: str) -> str:
    """
    Explain that the YAML configuration file does not exist.
    """

    return (
        f"Configuration file not found: {path}. "
        "Pass --config PATH or create config.yaml in the working directory."
    )


def explain_invalid_yaml(path: str, error: str) -> str:
    """
    Explain that the configuration file is not valid YAML.
    """

    return f"Failed to parse configuration file {path}: {error}"


def explain_missing_bucket() -> str:
    """
    Explain that the S3 bucket is missing.
    """

    return (
        "S3 bucket is not configured. "
        "Set s3.bucket in the configuration file or the S3_BUCKET environment variable."
    )


def explain_invalid_count_env(variable: str, value: str | None) -> str:
    """
    Explain that a retention count environment variable is invalid.
    """

    return (
        f"Invalid {variable} value: {value!r}. "
        "It must be a non-negative integer number of backups."
    )


def explain_invalid_scope_env(value: str | None) -> str:
    """
    Explain that BACKUP_RETENTION_SCOPE is invalid.
    """

    return (
        f"Invalid BACKUP_RETENTION_SCOPE value: {value!r}. "
        "Expected 'global' or 'per_job'."
    )


def explain_missing_passphrase() -> str:
    """
    Explain that encryption is enabled without a passphrase.
    """

    return (
        "encryption.enabled is true but no passphrase was provided. "
        "Set encryption.passphrase or the BACKUP_PASSPHRASE environment variable."
    )


def explain_encrypted_artifact_without_key(key: str) -> str:
    """
    Explain that an encrypted artifact cannot be restored without a passphrase.
    """

    return (
        f"Backup {key} is encrypted but encryption is not enabled in the configuration. "
        "Enable encryption and provide the passphrase used when it was created."
    )


def explain_invalid_setting(name: str, value: object, expected: str) -> str:
    """
    Explain that a numeric run setting in the configuration file is invalid.
    """

    return f"Invalid {name} value: {value!r}. It must be {expected}."
