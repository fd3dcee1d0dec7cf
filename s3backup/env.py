# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Configuration loading from YAML plus environment overrides.

The configuration file keeps the service's established layout:

    s3:
      bucket: my-backups
      region: us-east-1
      endpoint: https://minio.local:9000
      access_key_id: ...
      secret_access_key: ...
      prefix: backups
    backups:
      - name: home
        folders: [/home/me]
        exclude: ["*.tmp"]
    encryption:
      enabled: true
      passphrase: ...
    retention:
      daily: 10
      monthly: 1
    telegram:
      enabled: true
      bot_token: ...
      chat_id: ...

Secrets are better supplied through environment variables, which take
precedence over the file.
"""

from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from s3backup.config import (
    BackupConfig,
    BackupJob,
    EncryptionSettings,
    RetentionPolicy,
    RetentionScope,
    S3Settings,
    TelegramSettings,
)
from s3backup.errors import (
    explain_invalid_count_env,
    explain_invalid_scope_env,
    explain_invalid_setting,
    explain_invalid_yaml,
    explain_missing_bucket,
    explain_missing_config_file,
)
from s3backup.exceptions import ConfigurationError

DEFAULT_DAILY = 10
DEFAULT_MONTHLY = 1
DEFAULT_MAX_CONCURRENT_OPS = 10


def _parse_count(variable: str, value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_count_env(variable, str(value))) from exc
    if count < 0:
        raise ConfigurationError(explain_invalid_count_env(variable, str(value)))
    return count


def _parse_concurrency(value: Any) -> int:
    if value is None or value == "":
        return DEFAULT_MAX_CONCURRENT_OPS
    expected = "a positive integer"
    if isinstance(value, bool) or isinstance(value, float) and not value.is_integer():
        raise ConfigurationError(explain_invalid_setting("max_concurrent_ops", value, expected))
    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            explain_invalid_setting("max_concurrent_ops", value, expected)
        ) from exc
    if count < 1:
        raise ConfigurationError(explain_invalid_setting("max_concurrent_ops", value, expected))
    return count


def _parse_timeout(value: Any) -> float | None:
    if value is None or value == "":
        return None
    expected = "a positive number of seconds"
    if isinstance(value, bool):
        raise ConfigurationError(
            explain_invalid_setting("operation_timeout_seconds", value, expected)
        )
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            explain_invalid_setting("operation_timeout_seconds", value, expected)
        ) from exc
    if not math.isfinite(seconds) or seconds <= 0:
        raise ConfigurationError(
            explain_invalid_setting("operation_timeout_seconds", value, expected)
        )
    return seconds


def _parse_scope(value: str | None) -> RetentionScope:
    if not value:
        return RetentionScope.GLOBAL
    try:
        return RetentionScope(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_scope_env(value)) from exc


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Configuration section {name!r} must be a mapping")
    return section


def _env(name: str, fallback: Any = None) -> Any:
    value = os.getenv(name)
    return value if value else fallback


def _build_jobs(entries: Any) -> List[BackupJob]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigurationError("Configuration section 'backups' must be a list")

    jobs: List[BackupJob] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Invalid backup entry: {entry!r}")
        jobs.append(
            BackupJob(
                name=str(entry.get("name") or ""),
                folders=[str(f) for f in entry.get("folders") or []],
                exclude=[str(p) for p in entry.get("exclude") or []],
            )
        )
    return jobs


def config_from_dict(data: Dict[str, Any]) -> BackupConfig:
    """
    Build a BackupConfig from parsed YAML data plus environment overrides.

    Environment variables:
        - S3_BUCKET, AWS_REGION, S3_ENDPOINT, S3_PREFIX
        - AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY
        - BACKUP_PASSPHRASE: enables encryption when set
        - TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID
        - BACKUP_RETENTION_DAILY, BACKUP_RETENTION_MONTHLY
        - BACKUP_RETENTION_SCOPE: 'global' | 'per_job'
    """
    s3 = _section(data, "s3")
    encryption = _section(data, "encryption")
    retention = _section(data, "retention")
    telegram = _section(data, "telegram")

    bucket = _env("S3_BUCKET", s3.get("bucket"))
    if not bucket:
        raise ConfigurationError(explain_missing_bucket())

    passphrase = _env("BACKUP_PASSPHRASE", encryption.get("passphrase"))
    encryption_enabled = _parse_bool(encryption.get("enabled", False)) or bool(
        os.getenv("BACKUP_PASSPHRASE")
    )

    policy = RetentionPolicy(
        daily=_parse_count(
            "BACKUP_RETENTION_DAILY",
            _env("BACKUP_RETENTION_DAILY", retention.get("daily")),
            DEFAULT_DAILY,
        ),
        monthly=_parse_count(
            "BACKUP_RETENTION_MONTHLY",
            _env("BACKUP_RETENTION_MONTHLY", retention.get("monthly")),
            DEFAULT_MONTHLY,
        ),
        scope=_parse_scope(_env("BACKUP_RETENTION_SCOPE", retention.get("scope"))),
        protect_chains=_parse_bool(retention.get("protect_chains", False)),
    )

    temp_dir = data.get("temp_dir")

    return BackupConfig(
        s3=S3Settings(
            bucket=str(bucket),
            region=_env("AWS_REGION", s3.get("region") or "us-east-1"),
            endpoint=_env("S3_ENDPOINT", s3.get("endpoint")),
            access_key_id=_env("AWS_ACCESS_KEY_ID", s3.get("access_key_id")),
            secret_access_key=_env("AWS_SECRET_ACCESS_KEY", s3.get("secret_access_key")),
            prefix=str(_env("S3_PREFIX", s3.get("prefix") or "")),
        ),
        backups=_build_jobs(data.get("backups")),
        encryption=EncryptionSettings(enabled=encryption_enabled, passphrase=passphrase),
        retention=policy,
        telegram=TelegramSettings(
            enabled=_parse_bool(telegram.get("enabled", False)),
            bot_token=_env("TELEGRAM_BOT_TOKEN", telegram.get("bot_token")),
            chat_id=_env("TELEGRAM_CHAT_ID", telegram.get("chat_id")),
        ),
        state_dir=Path(data.get("state_dir") or "./s3backup_state").expanduser(),
        temp_dir=Path(temp_dir).expanduser() if temp_dir else None,
        max_concurrent_ops=_parse_concurrency(data.get("max_concurrent_ops")),
        operation_timeout_seconds=_parse_timeout(data.get("operation_timeout_seconds")),
    )


def load_config(path: str | Path) -> BackupConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file

    Returns:
        Validated BackupConfig

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(explain_missing_config_file(str(path)))

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(explain_invalid_yaml(str(path), str(exc))) from exc

    if not isinstance(data, dict):
        raise ConfigurationError(explain_invalid_yaml(str(path), "top level must be a mapping"))

    return config_from_dict(data)
