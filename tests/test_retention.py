# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Retention tests.

These verify the rotation guarantees:
1. The newest `daily` artifacts always survive
2. The last artifact of the newest month(s) survives
3. Only listed backup artifacts are ever deleted
4. One failed delete never stops the others
"""

import time
from datetime import datetime, timedelta

import pytest

from conftest import FakeStorage, make_key
from s3backup.exceptions import ConfigurationError
from s3backup.lifecycle import (
    RetentionPolicy,
    RetentionScope,
    apply_retention,
    resolve_chain,
    select_for_deletion,
)
from s3backup.naming import ArtifactKind


def _daily_keys(name: str, start: datetime, days: int, kind=ArtifactKind.FULL) -> list:
    return [
        make_key(name, (start + timedelta(days=i)).strftime("%Y%m%d%H%M%S"), kind)
        for i in range(days)
    ]


@pytest.fixture
def fifteen_days() -> list:
    """Nov 24 .. Dec 8: 7 artifacts in November, 8 in December."""
    return _daily_keys("home", datetime(2025, 11, 24, 2, 0, 0), 15)


# ============================================================================
# Planning
# ============================================================================

def test_keeps_ten_newest_plus_latest_month(fifteen_days):
    plan = select_for_deletion(fifteen_days, RetentionPolicy(daily=10, monthly=1))

    assert plan.keep == frozenset(fifteen_days[-10:])
    assert plan.delete == frozenset(fifteen_days[:5])
    assert len(plan.keep) in (10, 11)


def test_monthly_representative_added_when_outside_daily_window(fifteen_days):
    plan = select_for_deletion(fifteen_days, RetentionPolicy(daily=5, monthly=2))

    november_last = fifteen_days[6]
    assert november_last in plan.keep
    assert plan.keep == frozenset(fifteen_days[-5:] + [november_last])


def test_monthly_only_keeps_last_artifact_of_latest_month(fifteen_days):
    plan = select_for_deletion(fifteen_days, RetentionPolicy(daily=0, monthly=1))

    assert plan.keep == frozenset([fifteen_days[-1]])
    assert len(plan.delete) == 14


def test_monthly_representative_may_be_incremental():
    keys = [
        make_key("home", "20251201000000", ArtifactKind.FULL),
        make_key("home", "20251202000000", ArtifactKind.INCREMENTAL),
    ]
    plan = select_for_deletion(keys, RetentionPolicy(daily=0, monthly=1))

    assert plan.keep == frozenset([keys[1]])


def test_zero_counts_delete_everything(fifteen_days):
    plan = select_for_deletion(fifteen_days, RetentionPolicy(daily=0, monthly=0))
    assert plan.delete == frozenset(fifteen_days)
    assert plan.keep == frozenset()


def test_empty_listing_yields_empty_plan():
    plan = select_for_deletion([], RetentionPolicy())
    assert plan.keep == frozenset()
    assert plan.delete == frozenset()


def test_non_artifacts_are_never_selected(fifteen_days):
    listing = fifteen_days + ["backups/README.md", "home_latest.tar.gz"]
    plan = select_for_deletion(listing, RetentionPolicy(daily=1, monthly=0))

    assert "backups/README.md" not in plan.delete
    assert "home_latest.tar.gz" not in plan.delete
    assert plan.delete <= frozenset(fifteen_days)


def test_deletions_ordered_oldest_first(fifteen_days):
    plan = select_for_deletion(list(reversed(fifteen_days)), RetentionPolicy(daily=10))
    assert list(plan.delete_keys) == fifteen_days[:5]


def test_planning_is_idempotent(fifteen_days):
    policy = RetentionPolicy(daily=10, monthly=1)
    assert select_for_deletion(fifteen_days, policy) == select_for_deletion(
        fifteen_days, policy
    )


def test_global_scope_pools_jobs():
    a = _daily_keys("a", datetime(2025, 12, 1), 3)
    b = _daily_keys("b", datetime(2025, 12, 10), 3)
    plan = select_for_deletion(a + b, RetentionPolicy(daily=2, monthly=0))

    assert plan.keep == frozenset(b[-2:])
    assert set(a) <= plan.delete


def test_per_job_scope_applies_quota_to_each_job():
    a = _daily_keys("a", datetime(2025, 12, 1), 3)
    b = _daily_keys("b", datetime(2025, 12, 10), 3)
    policy = RetentionPolicy(daily=2, monthly=0, scope=RetentionScope.PER_JOB)
    plan = select_for_deletion(a + b, policy)

    assert plan.keep == frozenset(a[-2:] + b[-2:])
    assert plan.delete == frozenset([a[0], b[0]])


def test_default_policy_may_drop_anchor_of_kept_incremental():
    full = make_key("home", "20251201000000", ArtifactKind.FULL)
    incrementals = _daily_keys(
        "home", datetime(2025, 12, 2), 7, kind=ArtifactKind.INCREMENTAL
    )
    plan = select_for_deletion([full] + incrementals, RetentionPolicy(daily=3, monthly=1))

    assert full in plan.delete


def test_protect_chains_keeps_whole_chain_of_kept_incremental():
    full = make_key("home", "20251201000000", ArtifactKind.FULL)
    incrementals = _daily_keys(
        "home", datetime(2025, 12, 2), 7, kind=ArtifactKind.INCREMENTAL
    )
    listing = [full] + incrementals
    policy = RetentionPolicy(daily=3, monthly=1, protect_chains=True)
    plan = select_for_deletion(listing, policy)

    assert plan.delete == frozenset()
    newest = incrementals[-1]
    assert resolve_chain(plan.keep, newest).keys == resolve_chain(listing, newest).keys


def test_protect_chains_still_rotates_out_older_chains():
    old_full = make_key("home", "20251101000000", ArtifactKind.FULL)
    old_incr = make_key("home", "20251102000000", ArtifactKind.INCREMENTAL)
    full = make_key("home", "20251201000000", ArtifactKind.FULL)
    incrementals = _daily_keys(
        "home", datetime(2025, 12, 2), 4, kind=ArtifactKind.INCREMENTAL
    )
    listing = [old_full, old_incr, full] + incrementals
    policy = RetentionPolicy(daily=2, monthly=1, protect_chains=True)
    plan = select_for_deletion(listing, policy)

    assert plan.delete == frozenset([old_full, old_incr])
    for key in incrementals:
        assert resolve_chain(plan.keep, key).target.key == key


def test_negative_counts_rejected():
    with pytest.raises(ConfigurationError):
        RetentionPolicy(daily=-1)


# ============================================================================
# Applying
# ============================================================================

@pytest.mark.asyncio
async def test_apply_deletes_planned_keys(fifteen_days):
    storage = FakeStorage(fifteen_days + ["backups/README.md"])

    result = await apply_retention(storage, RetentionPolicy(daily=10, monthly=1))

    assert result.ok
    assert sorted(storage.deleted) == sorted(fifteen_days[:5])
    assert result.deleted_count == 5
    assert result.kept_count == 10
    assert result.total_scanned == 16
    assert "backups/README.md" in storage.objects
    assert storage.list_calls == 1


@pytest.mark.asyncio
async def test_apply_continues_past_individual_failures(fifteen_days):
    storage = FakeStorage(fifteen_days)
    storage.fail_delete = {fifteen_days[1], fifteen_days[3]}

    result = await apply_retention(storage, RetentionPolicy(daily=10, monthly=1))

    assert not result.ok
    assert sorted(result.failed_keys) == sorted([fifteen_days[1], fifteen_days[3]])
    assert sorted(result.deleted_keys) == sorted(
        [fifteen_days[0], fifteen_days[2], fifteen_days[4]]
    )
    assert len(result.errors) == 2


@pytest.mark.asyncio
async def test_apply_twice_is_stable(fifteen_days):
    storage = FakeStorage(fifteen_days)
    policy = RetentionPolicy(daily=10, monthly=1)

    await apply_retention(storage, policy)
    second = await apply_retention(storage, policy)

    assert second.deleted_count == 0
    assert sorted(storage.objects) == sorted(fifteen_days[-10:])


@pytest.mark.asyncio
async def test_listing_failure_makes_rotation_a_noop(fifteen_days):
    storage = FakeStorage(fifteen_days)
    storage.fail_list = True

    result = await apply_retention(storage, RetentionPolicy(daily=1))

    assert storage.deleted == []
    assert result.deleted_count == 0
    assert "retention skipped" in result.errors[0]


@pytest.mark.asyncio
async def test_expired_deadline_starts_no_deletions(fifteen_days):
    storage = FakeStorage(fifteen_days)

    result = await apply_retention(
        storage,
        RetentionPolicy(daily=10, monthly=1),
        deadline=time.monotonic() - 1,
    )

    assert storage.deleted == []
    assert sorted(result.skipped_keys) == sorted(fifteen_days[:5])
    assert not result.ok
