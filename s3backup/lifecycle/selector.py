# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Snapshot type selection.

A job gets an incremental snapshot only when a full backup for it already
exists in the current calendar month; otherwise a new full anchor is taken.
Incremental chains therefore never cross a month boundary.
"""

from datetime import datetime
from typing import Iterable

from s3backup.naming import ArtifactKind, ArtifactName, decode_key, month_bucket


def decide_kind(
    name: str,
    force_full: bool,
    listing: Iterable[str | ArtifactName] | None,
    now: datetime,
) -> ArtifactKind:
    """
    Decide whether the next archive for a job is full or incremental.

    Args:
        name: Backup job name
        force_full: Caller demands a full snapshot
        listing: Stored artifact keys, or None when the listing failed
        now: Time of the run

    Returns:
        ArtifactKind.FULL or ArtifactKind.INCREMENTAL
    """
    if force_full or not listing:
        return ArtifactKind.FULL

    current = month_bucket(now)
    for item in listing:
        artifact = item if isinstance(item, ArtifactName) else decode_key(item)
        if artifact is None:
            continue
        if (
            artifact.name == name
            and artifact.is_full
            and artifact.month_bucket == current
        ):
            return ArtifactKind.INCREMENTAL

    return ArtifactKind.FULL
