# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
GPG symmetric encryption of backup archives.

The passphrase is passed on stdin, never on the command line.
"""

from pathlib import Path
from typing import List

import structlog

from s3backup.exceptions import CipherError
from s3backup.naming import ENCRYPTED_SUFFIX
from s3backup.process import run_command

logger = structlog.get_logger()


class GpgCipher:
    """Encrypts and decrypts files with gpg --symmetric."""

    def __init__(self, passphrase: str, gpg_binary: str = "gpg"):
        self._passphrase = passphrase
        self.gpg_binary = gpg_binary

    def _base_args(self) -> List[str]:
        return [
            self.gpg_binary,
            "--batch",
            "--yes",
            "--pinentry-mode",
            "loopback",
            "--passphrase-fd",
            "0",
        ]

    async def encrypt(self, path: Path) -> Path:
        """Encrypt path to path + '.gpg'."""
        path = Path(path)
        encrypted_path = path.with_name(path.name + ENCRYPTED_SUFFIX)

        args = self._base_args() + ["--symmetric", "--output", str(encrypted_path), str(path)]
        returncode, output = await run_command(args, input_bytes=self._passphrase.encode())
        if returncode != 0:
            encrypted_path.unlink(missing_ok=True)
            raise CipherError(
                "gpg encryption failed",
                details={"path": str(path), "output": output},
            )

        logger.debug("archive_encrypted", path=str(encrypted_path))
        return encrypted_path

    async def decrypt(self, path: Path) -> Path:
        """Decrypt path (ending in '.gpg') next to itself."""
        path = Path(path)
        if not path.name.endswith(ENCRYPTED_SUFFIX):
            raise CipherError(
                "Not an encrypted archive",
                details={"path": str(path)},
            )
        decrypted_path = path.with_name(path.name[: -len(ENCRYPTED_SUFFIX)])

        args = self._base_args() + ["--decrypt", "--output", str(decrypted_path), str(path)]
        returncode, output = await run_command(args, input_bytes=self._passphrase.encode())
        if returncode != 0:
            decrypted_path.unlink(missing_ok=True)
            raise CipherError(
                "gpg decryption failed",
                details={"path": str(path), "output": output},
            )

        logger.debug("archive_decrypted", path=str(decrypted_path))
        return decrypted_path
