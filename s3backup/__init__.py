# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
s3backup - Incremental tar backups to S3 with rotation and chain restore.

Archives configured folders with GNU tar, optionally encrypts them with gpg,
uploads them to an S3 bucket and rotates old artifacts under a daily +
monthly retention policy. Artifact keys are the only metadata: job name,
timestamp, full/incremental kind and encryption are encoded in the name.
"""

__version__ = "0.1.0"

# Configuration
from s3backup.config import BackupConfig
from s3backup.env import load_config

# Core orchestration functions
from s3backup.core import (
    list_backups,
    restore_backup,
    rotate,
    run_backup,
)

# Lifecycle decisions
from s3backup.lifecycle import (
    RetentionPolicy,
    RetentionScope,
    decide_kind,
    resolve_chain,
    select_for_deletion,
)
from s3backup.naming import ArtifactKind, ArtifactName, decode_key, encode_key

__all__ = [
    # Version
    "__version__",
    # Configuration
    "BackupConfig",
    "load_config",
    # Core orchestration functions
    "run_backup",
    "list_backups",
    "restore_backup",
    "rotate",
    # Lifecycle decisions
    "RetentionPolicy",
    "RetentionScope",
    "decide_kind",
    "resolve_chain",
    "select_for_deletion",
    # Naming
    "ArtifactKind",
    "ArtifactName",
    "decode_key",
    "encode_key",
]
