#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Bounded invocation of external packaging tools.

``candle``/``light``, ``makensis``, ``hdiutil`` and ``mksquashfs`` run
through ``provide.foundation.process.run`` with a hard timeout; a tool that
overruns is killed. Tools get Foundation's scrubbed environment, so signing
keys in ``SHIPWRIGHT_SIGN_*`` never reach them.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import os
from pathlib import Path
import shutil

from provide.foundation import logger
from provide.foundation.errors import ProcessError, ProcessTimeoutError
from provide.foundation.process import CompletedProcess, run

from shipwright.exceptions import ExternalToolError, ExternalToolTimeout, ToolNotFound

STDERR_TAIL = 2000


def find_tool(name: str, search_dirs: Sequence[Path] = ()) -> Path:
    """Locate an executable in ``search_dirs`` first, then on ``PATH``.

    Raises:
        ToolNotFound: the tool is not installed
    """
    candidate = Path(name)
    if candidate.is_absolute() or len(candidate.parts) > 1:
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return candidate
        raise ToolNotFound(f"External tool not found or not executable: {name}")

    for directory in search_dirs:
        found = shutil.which(name, path=str(directory))
        if found:
            return Path(found)

    found = shutil.which(name)
    if found:
        return Path(found)
    raise ToolNotFound(f"External tool '{name}' not found on PATH")


def run_tool(
    args: Sequence[str | Path],
    timeout: float,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> CompletedProcess:
    """Run an external tool to completion within ``timeout`` seconds.

    ``env`` holds overrides on top of the scrubbed environment. Standard
    input is closed.

    Raises:
        ExternalToolTimeout: the tool did not finish in time (it is killed)
        ExternalToolError: the tool exited non-zero or could not be started
    """
    argv = [str(a) for a in args]
    tool = Path(argv[0]).name
    logger.debug("🔧 Running external tool", command=" ".join(argv), timeout=timeout)

    try:
        result = run(argv, cwd=cwd, env=env, capture_output=True, check=False, timeout=timeout, input="")
    except ProcessTimeoutError as e:
        raise ExternalToolTimeout(f"{tool} did not finish within {timeout:.0f}s") from e
    except ProcessError as e:
        raise ExternalToolError(f"Failed to start {tool}: {e}") from e

    if result.returncode != 0:
        detail = (result.stderr or result.stdout).strip()[-STDERR_TAIL:]
        logger.error(f"❌ {tool} exited with code {result.returncode}")
        raise ExternalToolError(f"{tool} failed with exit code {result.returncode}: {detail}")

    if result.stderr:
        logger.trace(f"{tool} stderr: {result.stderr.strip()[:500]}")
    return result


# 🚢📦🔚
