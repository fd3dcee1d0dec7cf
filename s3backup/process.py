# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
External tool invocation for tar and gpg.
"""

import asyncio
from typing import Sequence, Tuple


async def run_command(
    args: Sequence[str],
    input_bytes: bytes | None = None,
) -> Tuple[int, str]:
    """
    Run a command to completion.

    Args:
        args: Program and arguments (no shell involved)
        input_bytes: Data written to the process stdin

    Returns:
        Tuple of (return code, combined stdout/stderr text)
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.PIPE if input_bytes is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    stdout, _ = await process.communicate(input=input_bytes)
    return process.returncode, stdout.decode("utf-8", errors="replace").strip()
