# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Retention Engine - Backup rotation under a daily + monthly policy.

Planning is a pure function of one listing snapshot and the policy:

1. Monthly: the last artifact of each month bucket is that month's
   representative; representatives of the most recent ``monthly`` buckets
   are kept.
2. Daily: the last ``daily`` artifacts are kept.
3. Everything else that was recognized as an artifact is deleted.

By default counts apply to all jobs pooled together and keep/delete is
decided per artifact, so a full backup may be rotated out while one of its
incrementals survives. ``RetentionScope.PER_JOB`` opts into per-job quotas;
``protect_chains`` keeps every backup a kept incremental needs to restore.

"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List

import structlog

from s3backup.lifecycle.chain import dependency_map
from s3backup.naming import ArtifactName, parse_listing

logger = structlog.get_logger()


class RetentionScope(str, Enum):
    """How retention counts are applied across backup jobs."""

    GLOBAL = "global"  # All jobs pooled by timestamp
    PER_JOB = "per_job"  # Counts applied to each job separately


@dataclass(frozen=True)
class RetentionPolicy:
    """How many artifacts survive rotation."""

    # Most recent artifacts kept
    daily: int = 10

    # Most recent month buckets whose last artifact is kept
    monthly: int = 1

    scope: RetentionScope = RetentionScope.GLOBAL

    # Keep every backup a kept incremental needs to restore
    protect_chains: bool = False

    def __post_init__(self) -> None:
        errors: List[str] = []
        if self.daily < 0:
            errors.append(f"retention daily must be >= 0, got {self.daily}")
        if self.monthly < 0:
            errors.append(f"retention monthly must be >= 0, got {self.monthly}")
        if errors:
            from s3backup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Invalid retention policy",
                details={"errors": errors},
            )


@dataclass(frozen=True)
class RetentionPlan:
    """Keep/delete decision for one listing snapshot."""

    keep: FrozenSet[str]
    delete: FrozenSet[str]

    # Deletion order (oldest first)
    delete_keys: tuple = ()


@dataclass
class RotationResult:
    """Result of applying a retention plan."""

    operation_id: str
    total_scanned: int
    kept_count: int
    deleted_count: int
    errors: List[str]
    duration_seconds: float = 0.0
    deleted_keys: List[str] = field(default_factory=list)
    failed_keys: List[str] = field(default_factory=list)
    skipped_keys: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _monthly_keep(artifacts: List[ArtifactName], monthly: int) -> set:
    if monthly <= 0:
        return set()

    representatives: Dict[str, ArtifactName] = {}
    for artifact in artifacts:
        representatives[artifact.month_bucket] = artifact

    recent_buckets = sorted(representatives)[-monthly:]
    return {representatives[bucket].key for bucket in recent_buckets}


def _daily_keep(artifacts: List[ArtifactName], daily: int) -> set:
    if daily <= 0:
        return set()
    return {a.key for a in artifacts[-daily:]}


def _select_keep(artifacts: List[ArtifactName], policy: RetentionPolicy) -> set:
    return _monthly_keep(artifacts, policy.monthly) | _daily_keep(
        artifacts, policy.daily
    )


def select_for_deletion(
    listing: Iterable[str | ArtifactName],
    policy: RetentionPolicy,
) -> RetentionPlan:
    """
    Plan which artifacts to keep and which to delete.

    Args:
        listing: All stored keys; non-artifacts are ignored
        policy: Retention policy

    Returns:
        RetentionPlan whose delete set only contains listed artifact keys
    """
    keys = dict.fromkeys(a.key if isinstance(a, ArtifactName) else a for a in listing)
    artifacts = parse_listing(keys)

    if not artifacts:
        return RetentionPlan(keep=frozenset(), delete=frozenset())

    if policy.scope == RetentionScope.PER_JOB:
        by_job: Dict[str, List[ArtifactName]] = {}
        for artifact in artifacts:
            by_job.setdefault(artifact.name, []).append(artifact)
        keep: set = set()
        for job_artifacts in by_job.values():
            keep |= _select_keep(job_artifacts, policy)
    else:
        keep = _select_keep(artifacts, policy)

    if policy.protect_chains:
        dependencies = dependency_map(artifacts)
        for key in list(keep):
            keep.update(dependencies.get(key, ()))

    delete_keys = tuple(a.key for a in artifacts if a.key not in keep)

    return RetentionPlan(
        keep=frozenset(keep),
        delete=frozenset(delete_keys),
        delete_keys=delete_keys,
    )


async def apply_retention(
    storage: Any,
    policy: RetentionPolicy,
    *,
    operation_id: str | None = None,
    max_concurrency: int = 10,
    deadline: float | None = None,
) -> RotationResult:
    """
    List stored artifacts and delete the ones the policy rotates out.

    Deletes run concurrently and independently: a failed delete is
    recorded and never prevents the others. Deletes not started before
    the deadline (time.monotonic() value) are reported as skipped.

    Args:
        storage: Object providing async list_keys() and delete(key)
        policy: Retention policy
        operation_id: Operation ID for logging (generated if omitted)
        max_concurrency: Maximum simultaneous delete calls
        deadline: Monotonic time after which no new delete is started

    Returns:
        RotationResult with per-key outcome
    """
    from ulid import ULID

    from s3backup.exceptions import ListingUnavailableError

    operation_id = operation_id or str(ULID())
    start_time = datetime.now(UTC)

    logger.info(
        "retention_started",
        operation_id=operation_id,
        daily=policy.daily,
        monthly=policy.monthly,
        scope=policy.scope.value,
    )

    try:
        keys = await storage.list_keys()
    except ListingUnavailableError as e:
        logger.warning("retention_skipped_listing_unavailable", error=str(e))
        return RotationResult(
            operation_id=operation_id,
            total_scanned=0,
            kept_count=0,
            deleted_count=0,
            errors=[f"retention skipped: {e}"],
            duration_seconds=(datetime.now(UTC) - start_time).total_seconds(),
        )

    plan = select_for_deletion(keys, policy)

    errors: List[str] = []
    deleted_keys: List[str] = []
    failed_keys: List[str] = []
    skipped_keys: List[str] = []
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _delete(key: str) -> None:
        async with semaphore:
            if deadline is not None and time.monotonic() >= deadline:
                skipped_keys.append(key)
                logger.warning("retention_delete_skipped_deadline", key=key)
                return
            try:
                await storage.delete(key)
            except Exception as e:
                errors.append(f"{key}: {e}")
                failed_keys.append(key)
                logger.error("retention_delete_failed", key=key, error=str(e))
                return
            deleted_keys.append(key)
            logger.info("backup_rotated_out", key=key)

    await asyncio.gather(*(_delete(key) for key in plan.delete_keys))

    if skipped_keys:
        errors.append(f"deadline reached; {len(skipped_keys)} deletions not attempted")

    duration = (datetime.now(UTC) - start_time).total_seconds()

    logger.info(
        "retention_completed",
        operation_id=operation_id,
        kept=len(plan.keep),
        deleted=len(deleted_keys),
        failed=len(failed_keys),
        skipped=len(skipped_keys),
        duration=duration,
    )

    return RotationResult(
        operation_id=operation_id,
        total_scanned=len(keys),
        kept_count=len(plan.keep),
        deleted_count=len(deleted_keys),
        errors=errors,
        duration_seconds=duration,
        deleted_keys=deleted_keys,
        failed_keys=failed_keys,
        skipped_keys=skipped_keys,
    )
