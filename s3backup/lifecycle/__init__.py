# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup lifecycle decisions - snapshot kind, restore chains and retention.
"""

from s3backup.lifecycle.selector import decide_kind

from s3backup.lifecycle.chain import (
    BackupChain,
    dependency_map,
    resolve_chain,
)

from s3backup.lifecycle.retention import (
    RetentionPlan,
    RetentionPolicy,
    RetentionScope,
    RotationResult,
    apply_retention,
    select_for_deletion,
)

__all__ = [
    # Selector
    "decide_kind",
    # Chain
    "BackupChain",
    "dependency_map",
    "resolve_chain",
    # Retention
    "RetentionPlan",
    "RetentionPolicy",
    "RetentionScope",
    "RotationResult",
    "apply_retention",
    "select_for_deletion",
]
