"""Subprocess execution with enriched, typed error reporting.

Raw exit codes and ``subprocess`` exceptions never leave this module: failures
become ``ToolchainFailure`` (or ``TimeoutExceeded``) carrying the command, exit
code and captured output.
"""

import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from shipyard.core.errors import TimeoutExceeded, ToolchainFailure


def run_subprocess_with_context(
    cmd: Sequence[str],
    operation_context: str,
    cwd: Path | None = None,
    timeout: float | None = None,
    check: bool = True,
    **kwargs: Any,
) -> subprocess.CompletedProcess[str]:
    """Execute subprocess with enriched error reporting for the integration layer.

    Wraps subprocess.run() so callers deal only in shipyard error kinds.

    Args:
        cmd: Command and arguments to execute
        operation_context: Human-readable description of operation
        cwd: Working directory for command execution
        timeout: Seconds before the process is killed
        check: Whether to raise on non-zero exit (default: True)
        **kwargs: Additional arguments passed to subprocess.run()

    Returns:
        CompletedProcess instance from subprocess.run()

    Raises:
        ToolchainFailure: If the command exits non-zero (with check) or is missing
        TimeoutExceeded: If the command runs longer than ``timeout``
    """
    cmd_str = " ".join(str(arg) for arg in cmd)
    try:
        return subprocess.run(
            list(cmd),
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=check,
            timeout=timeout,
            **kwargs,
        )

    except subprocess.CalledProcessError as e:
        error_msg = f"Failed to {operation_context}"
        error_msg += f"\nCommand: {cmd_str}"
        error_msg += f"\nExit code: {e.returncode}"
        output = _describe_output(e.stdout, e.stderr)
        if output:
            error_msg += f"\n{output}"
        raise ToolchainFailure(error_msg, exit_code=e.returncode, output=output) from e

    except subprocess.TimeoutExpired as e:
        error_msg = f"Timed out after {timeout}s while trying to {operation_context}"
        error_msg += f"\nCommand: {cmd_str}"
        output = _describe_output(e.stdout, e.stderr)
        raise TimeoutExceeded(error_msg, output=output) from e

    except FileNotFoundError as e:
        error_msg = f"Command not found while trying to {operation_context}: {cmd[0]}"
        error_msg += f"\nFull command: {cmd_str}"
        raise ToolchainFailure(error_msg) from e


def _describe_output(stdout: str | bytes | None, stderr: str | bytes | None) -> str:
    parts: list[str] = []
    for label, stream in (("stdout", stdout), ("stderr", stderr)):
        if not stream:
            continue
        text = stream if isinstance(stream, str) else stream.decode("utf-8", errors="replace")
        stripped = text.strip()
        if stripped:
            parts.append(f"{label}: {stripped}")
    return "\n".join(parts)
