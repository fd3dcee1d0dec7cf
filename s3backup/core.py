# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
s3backup Core - Orchestration of backup, rotation and restore runs.

This module wires the lifecycle decisions (snapshot kind, retention,
restore chains) to the I/O collaborators: tar archiver, gpg cipher,
S3 storage and Telegram notifier.

A backup run always attempts every configured job and the retention pass,
collecting failures into one report. A restore run is all-or-nothing: the
first failing chain element aborts it.
"""

import tempfile
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, AsyncIterator, List

import structlog

from s3backup.archive import Archiver
from s3backup.cipher import GpgCipher
from s3backup.config import BackupConfig, BackupJob
from s3backup.errors import explain_encrypted_artifact_without_key
from s3backup.exceptions import (
    ListingUnavailableError,
    RestoreError,
    S3BackupError,
)
from s3backup.lifecycle import (
    RotationResult,
    apply_retention,
    decide_kind,
    resolve_chain,
)
from s3backup.naming import ArtifactKind, ArtifactName, parse_listing
from s3backup.notify import TelegramNotifier
from s3backup.storage import S3Storage

logger = structlog.get_logger()


@dataclass
class JobResult:
    """Outcome of one backup job."""

    name: str
    kind: ArtifactKind | None = None
    key: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BackupResult:
    """Result of a backup run (all jobs plus rotation)."""

    operation_id: str
    jobs: List[JobResult]
    rotation: RotationResult | None
    errors: List[str]
    duration_seconds: float
    uploaded_keys: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class RestoreResult:
    """Result of a restore run."""

    operation_id: str
    target_key: str
    target_dir: str
    chain_keys: List[str]
    restored_keys: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0


def _utc_now() -> datetime:
    # Artifact timestamps are naive UTC
    return datetime.now(UTC).replace(tzinfo=None)


def _deadline(config: BackupConfig) -> float | None:
    if config.operation_timeout_seconds is None:
        return None
    return time.monotonic() + config.operation_timeout_seconds


@asynccontextmanager
async def _open_storage(config: BackupConfig, storage: Any) -> AsyncIterator[Any]:
    if storage is not None:
        yield storage
        return
    async with S3Storage(config.s3) as s3_storage:
        yield s3_storage


def _build_cipher(config: BackupConfig, cipher: Any) -> Any:
    if cipher is not None:
        return cipher
    if config.encryption.enabled and config.encryption.passphrase:
        return GpgCipher(config.encryption.passphrase)
    return None


def _remove_quietly(path: Path | None) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("temp_file_cleanup_failed", path=str(path), error=str(e))


def format_report(result: BackupResult) -> str:
    """Render the notification text for a backup run."""
    if result.ok:
        return "✅ Backup completed successfully"
    lines = ["❌ Backup Failed:"]
    lines.extend(f"- {error}" for error in result.errors)
    return "\n".join(lines)


async def _backup_job(
    config: BackupConfig,
    job: BackupJob,
    *,
    force_full: bool,
    listing: List[str] | None,
    now: datetime,
    storage: Any,
    archiver: Any,
    cipher: Any,
) -> JobResult:
    """Archive, encrypt and upload one job. Raises on failure."""
    requested = decide_kind(job.name, force_full, listing, now)
    logger.info("backup_job_started", name=job.name, kind=requested.value)

    archive_path: Path | None = None
    upload_path: Path | None = None
    try:
        archive_path, kind = await archiver.create_archive(
            job.name, job.folders, job.exclude, now, requested
        )
        upload_path = archive_path

        if config.encryption.enabled:
            upload_path = await cipher.encrypt(archive_path)
            _remove_quietly(archive_path)

        key = await storage.upload(upload_path)
    except BaseException:
        archiver.discard_state(job.name)
        raise
    finally:
        _remove_quietly(archive_path)
        _remove_quietly(upload_path)

    # Next incremental is taken against what reached storage
    archiver.commit_state(job.name)

    logger.info("backup_job_completed", name=job.name, kind=kind.value, key=key)
    return JobResult(name=job.name, kind=kind, key=key)


async def run_backup(
    config: BackupConfig,
    *,
    force_full: bool = False,
    storage: Any = None,
    archiver: Any = None,
    cipher: Any = None,
    notifier: Any = None,
    now: datetime | None = None,
) -> BackupResult:
    """
    Run every configured backup job, then rotate old artifacts.

    This is the main entry point for scheduled and manual backups. It:
    1. Lists stored artifacts once (a failure degrades to full snapshots)
    2. Decides full/incremental per job and archives, encrypts, uploads
    3. Applies the retention policy
    4. Sends a notification with the consolidated outcome

    Args:
        config: Backup configuration
        force_full: Take full snapshots regardless of stored artifacts
        storage: Storage override (defaults to S3Storage)
        archiver: Archiver override
        cipher: Cipher override
        notifier: Notifier override
        now: Run time (naive UTC); defaults to the current time

    Returns:
        BackupResult; errors is empty only if everything succeeded
    """
    from ulid import ULID

    operation_id = str(ULID())
    start_time = datetime.now(UTC)
    now = now or _utc_now()
    deadline = _deadline(config)

    archiver = archiver or Archiver(config.state_dir, config.temp_dir)
    cipher = _build_cipher(config, cipher)
    notifier = notifier or TelegramNotifier(config.telegram)

    logger.info(
        "backup_run_started",
        operation_id=operation_id,
        jobs=len(config.backups),
        force_full=force_full,
    )

    errors: List[str] = []
    jobs: List[JobResult] = []
    rotation: RotationResult | None = None

    async with _open_storage(config, storage) as store:
        try:
            listing: List[str] | None = await store.list_keys()
        except ListingUnavailableError as e:
            logger.warning("listing_unavailable_taking_full_backups", error=str(e))
            listing = None

        for job in config.backups:
            try:
                jobs.append(
                    await _backup_job(
                        config,
                        job,
                        force_full=force_full,
                        listing=listing,
                        now=now,
                        storage=store,
                        archiver=archiver,
                        cipher=cipher,
                    )
                )
            except Exception as e:
                error_msg = f"backup {job.name} failed: {e}"
                errors.append(error_msg)
                jobs.append(JobResult(name=job.name, error=str(e)))
                logger.error("backup_job_failed", name=job.name, error=str(e))

        try:
            rotation = await apply_retention(
                store,
                config.retention,
                operation_id=operation_id,
                max_concurrency=config.max_concurrent_ops,
                deadline=deadline,
            )
            errors.extend(f"retention: {error}" for error in rotation.errors)
        except Exception as e:
            errors.append(f"retention failed: {e}")
            logger.error("retention_failed", operation_id=operation_id, error=str(e))

    duration = (datetime.now(UTC) - start_time).total_seconds()

    result = BackupResult(
        operation_id=operation_id,
        jobs=jobs,
        rotation=rotation,
        errors=errors,
        duration_seconds=duration,
        uploaded_keys=[j.key for j in jobs if j.key],
    )

    try:
        await notifier.notify(format_report(result))
    except Exception as e:
        logger.warning("notification_failed", operation_id=operation_id, error=str(e))

    logger.info(
        "backup_run_completed",
        operation_id=operation_id,
        uploaded=len(result.uploaded_keys),
        failed=len(errors),
        duration=duration,
    )
    return result


async def list_backups(config: BackupConfig, *, storage: Any = None) -> List[ArtifactName]:
    """
    List stored backup artifacts in chronological order.

    Raises:
        ListingUnavailableError: If the listing cannot be fetched
    """
    async with _open_storage(config, storage) as store:
        keys = await store.list_keys()
    return parse_listing(keys)


async def rotate(config: BackupConfig, *, storage: Any = None) -> RotationResult:
    """Apply the retention policy without taking a backup."""
    async with _open_storage(config, storage) as store:
        return await apply_retention(
            store,
            config.retention,
            max_concurrency=config.max_concurrent_ops,
            deadline=_deadline(config),
        )


async def restore_backup(
    config: BackupConfig,
    key: str,
    target_dir: Path,
    *,
    storage: Any = None,
    archiver: Any = None,
    cipher: Any = None,
) -> RestoreResult:
    """
    Restore the point in time captured by key into target_dir.

    Downloads, decrypts and extracts the full backup anchoring key and every
    incremental up to key, in order. Local copies are always removed.

    Args:
        config: Backup configuration
        key: Artifact to restore (with or without storage prefix)
        target_dir: Directory to extract into
        storage: Storage override (defaults to S3Storage)
        archiver: Archiver override
        cipher: Cipher override

    Returns:
        RestoreResult with the chain that was applied

    Raises:
        ChainNotFoundError: If no full backup anchors key
        RestoreError: If any chain element fails; later elements are skipped
    """
    from ulid import ULID

    operation_id = str(ULID())
    start_time = datetime.now(UTC)
    deadline = _deadline(config)
    target_dir = Path(target_dir)

    archiver = archiver or Archiver(config.state_dir, config.temp_dir)
    cipher = _build_cipher(config, cipher)

    logger.info("restore_started", operation_id=operation_id, key=key, target=str(target_dir))

    restored_keys: List[str] = []

    async with _open_storage(config, storage) as store:
        try:
            keys = await store.list_keys()
        except ListingUnavailableError as e:
            raise RestoreError(
                f"Cannot restore without a listing: {e.message}",
                details={"key": key},
            ) from e

        chain = resolve_chain(keys, key)
        logger.info("restore_chain_resolved", key=key, chain=chain.keys)

        for artifact in chain:
            if artifact.encrypted and cipher is None:
                raise RestoreError(explain_encrypted_artifact_without_key(artifact.key))

        if config.temp_dir:
            config.temp_dir.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(dir=config.temp_dir) as workdir:
            for artifact in chain:
                if deadline is not None and time.monotonic() >= deadline:
                    raise RestoreError(
                        "Restore deadline reached before all backups were applied",
                        details={"key": key, "restored": restored_keys},
                    )

                local_path = Path(workdir) / artifact.key.rsplit("/", 1)[-1]
                extract_path: Path | None = None
                try:
                    await store.download(artifact.key, local_path)
                    extract_path = local_path
                    if artifact.encrypted:
                        extract_path = await cipher.decrypt(local_path)
                        _remove_quietly(local_path)
                    await archiver.extract(extract_path, target_dir, artifact.kind)
                except (S3BackupError, OSError) as e:
                    logger.error("restore_step_failed", key=artifact.key, error=str(e))
                    raise RestoreError(
                        f"Failed to restore {artifact.key}: {getattr(e, 'message', e)}",
                        details={
                            **getattr(e, "details", {}),
                            "failed_key": artifact.key,
                            "key": key,
                            "restored": restored_keys,
                        },
                    ) from e
                finally:
                    _remove_quietly(local_path)
                    _remove_quietly(extract_path)

                restored_keys.append(artifact.key)

    duration = (datetime.now(UTC) - start_time).total_seconds()

    logger.info(
        "restore_completed",
        operation_id=operation_id,
        key=key,
        applied=len(restored_keys),
        duration=duration,
    )

    return RestoreResult(
        operation_id=operation_id,
        target_key=key,
        target_dir=str(target_dir),
        chain_keys=chain.keys,
        restored_keys=restored_keys,
        duration_seconds=duration,
    )
