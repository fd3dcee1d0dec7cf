# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Artifact Naming - Encode and decode backup artifact keys.

Artifact names are the only metadata the service keeps about a backup:
the job name, creation time, snapshot kind and whether the archive is
encrypted are all carried by the object key itself:

    <name>_<YYYYMMDDhhmmss>.<full|incr>.tar.gz[.gpg]

Keys may carry a storage prefix (``backups/...``); the prefix is not part
of the artifact identity.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
ARCHIVE_SUFFIX = ".tar.gz"
ENCRYPTED_SUFFIX = ".gpg"


class ArtifactKind(str, Enum):
    """Snapshot kind encoded in the artifact key."""

    FULL = "full"
    INCREMENTAL = "incr"


_KEY_PATTERN = re.compile(
    r"^(?P<name>[^/]+)_(?P<stamp>\d{14})"
    r"\.(?P<kind>full|incr)\.tar\.gz(?P<encrypted>\.gpg)?$"
)


@dataclass(frozen=True)
class ArtifactName:
    """Decoded fields of one backup artifact key."""

    name: str
    timestamp: datetime
    kind: ArtifactKind
    encrypted: bool = False

    # Original key as listed (prefix included); not part of identity
    key: str = field(default="", compare=False)

    @property
    def stamp(self) -> str:
        return format_timestamp(self.timestamp)

    @property
    def month_bucket(self) -> str:
        return month_bucket(self.timestamp)

    @property
    def is_full(self) -> bool:
        return self.kind == ArtifactKind.FULL

    @property
    def filename(self) -> str:
        return encode_key(self.name, self.timestamp, self.kind, self.encrypted)


def format_timestamp(dt: datetime) -> str:
    """Render a datetime in the fixed-width sortable wire form."""
    return dt.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(stamp: str) -> datetime:
    """
    Parse a 14-digit wire timestamp.

    Raises:
        ValueError: If the string is not a valid YYYYMMDDhhmmss instant
    """
    if len(stamp) != 14 or not stamp.isdigit():
        raise ValueError(f"Invalid timestamp: {stamp!r}")
    return datetime.strptime(stamp, TIMESTAMP_FORMAT)


def month_bucket(dt: datetime) -> str:
    """Year+month bucket (YYYYMM) of a timestamp."""
    return dt.strftime("%Y%m")


def encode_key(
    name: str,
    timestamp: datetime | str,
    kind: ArtifactKind,
    encrypted: bool = False,
    prefix: str = "",
) -> str:
    """
    Build the object key for an artifact.

    Args:
        name: Backup job name (must not contain '/')
        timestamp: Creation time, as a datetime or a 14-digit wire string
        kind: Full or incremental snapshot
        encrypted: Append the encryption marker
        prefix: Optional storage prefix

    Returns:
        The artifact key
    """
    if not name or "/" in name:
        raise ValueError(f"Invalid backup name: {name!r}")

    if isinstance(timestamp, datetime):
        stamp = format_timestamp(timestamp)
    else:
        stamp = format_timestamp(parse_timestamp(timestamp))

    key = f"{name}_{stamp}.{ArtifactKind(kind).value}{ARCHIVE_SUFFIX}"
    if encrypted:
        key += ENCRYPTED_SUFFIX

    if prefix:
        key = f"{prefix.rstrip('/')}/{key}"
    return key


def decode_key(key: str) -> ArtifactName | None:
    """
    Decode an artifact key.

    Returns None for anything that is not a backup artifact; callers
    skip such keys.
    """
    if not isinstance(key, str):
        return None

    basename = key.rsplit("/", 1)[-1]
    match = _KEY_PATTERN.match(basename)
    if match is None:
        return None

    try:
        timestamp = parse_timestamp(match.group("stamp"))
    except ValueError:
        return None

    return ArtifactName(
        name=match.group("name"),
        timestamp=timestamp,
        kind=ArtifactKind(match.group("kind")),
        encrypted=match.group("encrypted") is not None,
        key=key,
    )


def parse_listing(keys: Iterable[str]) -> List[ArtifactName]:
    """
    Decode a listing, dropping non-artifacts.

    The result is sorted chronologically; artifacts sharing a timestamp
    are ordered by key.
    """
    artifacts = [a for a in (decode_key(k) for k in keys) if a is not None]
    artifacts.sort(key=lambda a: (a.timestamp, a.key))
    return artifacts
