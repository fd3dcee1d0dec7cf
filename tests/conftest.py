# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for s3backup tests.

Provides in-memory storage, fake archiver/cipher/notifier collaborators
and test configuration helpers.
"""

import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Generator, List, Set

import pytest

from s3backup.naming import ArtifactKind, encode_key


def make_key(
    name: str,
    stamp: str,
    kind: ArtifactKind = ArtifactKind.FULL,
    encrypted: bool = False,
    prefix: str = "",
) -> str:
    """Build an artifact key from a 14-digit timestamp string."""
    return encode_key(name, stamp, kind, encrypted, prefix)


class FakeStorage:
    """In-memory stand-in for S3Storage."""

    def __init__(self, keys: List[str] | None = None, prefix: str = ""):
        self.objects: Dict[str, bytes] = {k: b"payload:" + k.encode() for k in keys or []}
        self.prefix = prefix
        self.fail_list = False
        self.fail_delete: Set[str] = set()
        self.fail_download: Set[str] = set()
        self.fail_upload = False
        self.deleted: List[str] = []
        self.downloaded: List[str] = []
        self.uploaded: List[str] = []
        self.list_calls = 0

    async def list_keys(self) -> List[str]:
        from s3backup.exceptions import ListingUnavailableError

        self.list_calls += 1
        if self.fail_list:
            raise ListingUnavailableError("Failed to list S3 objects: boom")
        return list(self.objects)

    async def upload(self, local_path: Path) -> str:
        from s3backup.exceptions import StorageError

        if self.fail_upload:
            raise StorageError("Failed to upload to S3: boom")
        key = f"{self.prefix}/{local_path.name}" if self.prefix else local_path.name
        self.objects[key] = Path(local_path).read_bytes()
        self.uploaded.append(key)
        return key

    async def download(self, key: str, local_path: Path) -> Path:
        from s3backup.exceptions import StorageError

        if key in self.fail_download or key not in self.objects:
            raise StorageError(f"Failed to download from S3: {key}")
        Path(local_path).write_bytes(self.objects[key])
        self.downloaded.append(key)
        return Path(local_path)

    async def delete(self, key: str) -> None:
        from s3backup.exceptions import StorageError

        if key in self.fail_delete:
            raise StorageError(f"Failed to delete S3 object: {key}")
        self.objects.pop(key, None)
        self.deleted.append(key)


class FakeArchiver:
    """Writes a small file instead of running tar."""

    def __init__(self, work_dir: Path, downgrade_to_full: bool = False):
        self.work_dir = work_dir
        self.downgrade_to_full = downgrade_to_full
        self.created: List[tuple] = []
        self.extracted: List[tuple] = []
        self.committed: List[str] = []
        self.discarded: List[str] = []
        self.fail_names: Set[str] = set()
        self.fail_extract: Set[str] = set()

    async def create_archive(self, name, folders, exclude, timestamp, kind):
        from s3backup.exceptions import ArchiveError

        if name in self.fail_names:
            raise ArchiveError("tar failed with exit code 2", details={"name": name})
        if self.downgrade_to_full:
            kind = ArtifactKind.FULL
        self.work_dir.mkdir(parents=True, exist_ok=True)
        path = self.work_dir / encode_key(name, timestamp, kind)
        path.write_bytes(b"archive:" + name.encode())
        self.created.append((name, kind))
        return path, kind

    def commit_state(self, name):
        self.committed.append(name)

    def discard_state(self, name):
        self.discarded.append(name)

    async def extract(self, archive_path, target_dir, kind=ArtifactKind.FULL):
        from s3backup.exceptions import ArchiveError

        archive_path = Path(archive_path)
        if archive_path.name in self.fail_extract:
            raise ArchiveError("tar extraction failed with exit code 2")
        assert archive_path.exists()
        self.extracted.append((archive_path.name, kind))


class FakeCipher:
    """Appends/strips .gpg without encrypting."""

    def __init__(self):
        self.encrypted: List[str] = []
        self.decrypted: List[str] = []

    async def encrypt(self, path: Path) -> Path:
        out = path.with_name(path.name + ".gpg")
        out.write_bytes(path.read_bytes())
        self.encrypted.append(out.name)
        return out

    async def decrypt(self, path: Path) -> Path:
        out = path.with_name(path.name[: -len(".gpg")])
        out.write_bytes(path.read_bytes())
        self.decrypted.append(path.name)
        return out


class FakeNotifier:
    """Records messages."""

    def __init__(self):
        self.messages: List[str] = []

    async def notify(self, text: str) -> bool:
        self.messages.append(text)
        return True


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def run_time() -> datetime:
    """Fixed run time in the middle of a month."""
    return datetime(2025, 12, 28, 7, 50, 27)


@pytest.fixture
def test_config(temp_dir: Path):
    """Create a test configuration with two jobs."""
    from s3backup.config import BackupConfig, BackupJob, S3Settings

    return BackupConfig(
        s3=S3Settings(bucket="test-bucket", region="us-east-1", prefix="backups"),
        backups=[
            BackupJob(name="home", folders=["/home/user"], exclude=["*.tmp"]),
            BackupJob(name="etc", folders=["/etc"]),
        ],
        state_dir=temp_dir / "state",
        temp_dir=temp_dir / "tmp",
    )


@pytest.fixture
def encrypted_config(test_config):
    """Test configuration with encryption enabled."""
    from s3backup.config import EncryptionSettings

    return test_config.with_updates(
        encryption=EncryptionSettings(enabled=True, passphrase="secret")
    )
