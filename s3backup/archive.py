# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Archiver - tar.gz archive creation and extraction via GNU tar.

Incremental archives rely on tar's listed-incremental state file, one per
backup job (``<state_dir>/<name>.snar``). A full archive starts from an
empty state; an incremental one continues from the stored state.

The state tar writes is kept pending next to the stored one until the
caller calls commit_state(), which it does once the archive is safely
uploaded. discard_state() drops it, so the next incremental is taken
against the last archive that actually reached storage.
"""

import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Sequence, Tuple

import structlog

from s3backup.exceptions import ArchiveError
from s3backup.naming import ArtifactKind, encode_key
from s3backup.process import run_command

logger = structlog.get_logger()


class Archiver:
    """Creates and extracts backup archives with GNU tar."""

    def __init__(
        self,
        state_dir: Path,
        temp_dir: Path | None = None,
        tar_binary: str = "tar",
    ):
        self.state_dir = Path(state_dir)
        self.temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self.tar_binary = tar_binary

    def state_file(self, name: str) -> Path:
        return self.state_dir / f"{name}.snar"

    def pending_state_file(self, name: str) -> Path:
        return self.state_dir / f"{name}.snar.tmp"

    def commit_state(self, name: str) -> None:
        """Make the state written by the last create_archive() the stored one."""
        pending = self.pending_state_file(name)
        if not pending.exists():
            raise ArchiveError(
                "No pending tar state to commit",
                details={"name": name, "state_file": str(pending)},
            )
        os.replace(pending, self.state_file(name))
        logger.debug("archive_state_committed", name=name)

    def discard_state(self, name: str) -> None:
        """Drop the pending state, keeping the stored one unchanged."""
        self.pending_state_file(name).unlink(missing_ok=True)
        logger.debug("archive_state_discarded", name=name)

    async def create_archive(
        self,
        name: str,
        folders: Sequence[str],
        exclude: Sequence[str],
        timestamp: datetime,
        kind: ArtifactKind,
    ) -> Tuple[Path, ArtifactKind]:
        """
        Archive folders into <temp_dir>/<artifact file name>.

        An incremental request without stored tar state produces a level-0
        dump, which is reported as a full archive. The updated tar state is
        left pending until commit_state() or discard_state().

        Returns:
            Tuple of (archive path, kind actually produced)
        """
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

        state_file = self.state_file(name)
        work_state = self.pending_state_file(name)
        work_state.unlink(missing_ok=True)

        if kind == ArtifactKind.INCREMENTAL:
            if state_file.exists():
                shutil.copy2(state_file, work_state)
            else:
                logger.warning("incremental_state_missing", name=name, state_file=str(state_file))
                kind = ArtifactKind.FULL

        archive_path = self.temp_dir / encode_key(name, timestamp, kind)

        args: List[str] = [
            self.tar_binary,
            "-czf",
            str(archive_path),
            "--listed-incremental",
            str(work_state),
        ]
        for pattern in exclude:
            args.extend(["--exclude", pattern])
        args.extend(folders)

        returncode, output = await run_command(args)
        if returncode != 0:
            work_state.unlink(missing_ok=True)
            archive_path.unlink(missing_ok=True)
            raise ArchiveError(
                f"tar failed with exit code {returncode}",
                details={"name": name, "output": output},
            )

        logger.info(
            "archive_created",
            name=name,
            kind=kind.value,
            path=str(archive_path),
            size=archive_path.stat().st_size,
        )
        return archive_path, kind

    async def extract(
        self,
        archive_path: Path,
        target_dir: Path,
        kind: ArtifactKind = ArtifactKind.FULL,
    ) -> None:
        """
        Extract an archive into target_dir.

        Incremental archives are replayed with tar's incremental semantics
        so files deleted between snapshots are removed again.
        """
        target_dir = Path(target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)

        args: List[str] = [self.tar_binary, "-xzf", str(archive_path), "-C", str(target_dir)]
        if kind == ArtifactKind.INCREMENTAL:
            args.append("--listed-incremental=/dev/null")

        returncode, output = await run_command(args)
        if returncode != 0:
            raise ArchiveError(
                f"tar extraction failed with exit code {returncode}",
                details={"archive": str(archive_path), "output": output},
            )

        logger.info("archive_extracted", archive=str(archive_path), target=str(target_dir))
