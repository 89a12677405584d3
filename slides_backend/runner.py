from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from .errors import ConversionStepError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
    returncode: int
    stdout: str
    stderr: str


# Signature shared by run_tool and test doubles.
ToolRunner = Callable[[str, Sequence[str], float], ToolResult]


def _decode(raw: bytes | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def run_tool(executable: str, args: Sequence[str], timeout: float) -> ToolResult:
    """Run an external tool to completion, killing it after `timeout` seconds.

    Non-zero exit, timeout and a missing executable all raise
    ConversionStepError. No retries.
    """
    tool = Path(executable).name or executable
    cmd = [executable, *args]
    logger.debug("Running %s", cmd)
    try:
        proc = subprocess.run(cmd, capture_output=True, timeout=timeout, check=False)
    except subprocess.TimeoutExpired as e:
        stderr = _decode(e.stderr)
        logger.error("%s timed out after %.0fs: %s", tool, timeout, stderr.strip())
        raise ConversionStepError(tool, f"timed out after {timeout:.0f}s", stderr) from e
    except OSError as e:
        # FileNotFoundError / PermissionError: the executable is not runnable.
        logger.error("%s could not be started: %s", tool, e)
        raise ConversionStepError(tool, f"could not be started: {e.strerror or e}") from e

    result = ToolResult(returncode=proc.returncode, stdout=_decode(proc.stdout), stderr=_decode(proc.stderr))
    if result.returncode != 0:
        logger.error("%s exited with status %d: %s", tool, result.returncode, result.stderr.strip())
        raise ConversionStepError(tool, f"exit status {result.returncode}", result.stderr)
    return result
