# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup chain resolution.

Restoring a point in time means replaying the latest full backup at or
before it, followed by every incremental taken after that full up to and
including the requested artifact.
"""

from typing import Dict, Iterable, Iterator, List, Tuple

from s3backup.exceptions import ChainNotFoundError
from s3backup.naming import ArtifactName, decode_key, parse_listing


class BackupChain:
    """Ordered artifacts needed to restore one point in time."""

    __slots__ = ("_artifacts",)

    def __init__(self, artifacts: Iterable[ArtifactName]):
        self._artifacts: Tuple[ArtifactName, ...] = tuple(artifacts)
        if not self._artifacts:
            raise ValueError("A backup chain cannot be empty")

    @property
    def anchor(self) -> ArtifactName:
        return self._artifacts[0]

    @property
    def target(self) -> ArtifactName:
        return self._artifacts[-1]

    @property
    def keys(self) -> List[str]:
        return [a.key for a in self._artifacts]

    def __iter__(self) -> Iterator[ArtifactName]:
        return iter(self._artifacts)

    def __len__(self) -> int:
        return len(self._artifacts)

    def __getitem__(self, index: int) -> ArtifactName:
        return self._artifacts[index]

    def __repr__(self) -> str:
        return f"BackupChain({self.keys!r})"


def _listing_artifacts(listing: Iterable[str | ArtifactName]) -> List[ArtifactName]:
    keys = [a.key if isinstance(a, ArtifactName) else a for a in listing]
    return parse_listing(keys)


def resolve_chain(
    listing: Iterable[str | ArtifactName],
    target_key: str,
) -> BackupChain:
    """
    Compute the ordered artifacts needed to restore target_key.

    Args:
        listing: All stored artifact keys
        target_key: Artifact to restore, with or without storage prefix

    Returns:
        BackupChain starting at a full backup and ending at the target

    Raises:
        ChainNotFoundError: If the target is not an artifact or no full
            backup anchors it
    """
    target = decode_key(target_key)
    if target is None:
        raise ChainNotFoundError(target_key, reason="not a backup artifact")

    candidates = [
        a
        for a in _listing_artifacts(listing)
        if a.name == target.name and a.timestamp <= target.timestamp
    ]

    chain: List[ArtifactName] = []
    for artifact in candidates:
        if artifact.is_full:
            chain = [artifact]
        elif chain:
            chain.append(artifact)

    for position, artifact in enumerate(chain):
        if artifact == target:
            return BackupChain(chain[: position + 1])

    if not chain:
        raise ChainNotFoundError(target_key)
    raise ChainNotFoundError(target_key, reason="target not reachable from latest full backup")


def dependency_map(listing: Iterable[str | ArtifactName]) -> Dict[str, List[str]]:
    """
    Map every incremental key to the keys it depends on, oldest first.

    An incremental depends on the latest full backup of its job and on
    every incremental taken between that full and itself, exactly the
    chain resolve_chain() would return without the incremental itself.
    Incrementals listed before any full backup of their job are left out.
    """
    dependencies: Dict[str, List[str]] = {}
    current: Dict[str, List[str]] = {}

    for artifact in _listing_artifacts(listing):
        if artifact.is_full:
            current[artifact.name] = [artifact.key]
        elif artifact.name in current:
            dependencies[artifact.key] = list(current[artifact.name])
            current[artifact.name].append(artifact.key)

    return dependencies
