"""Tests for subprocess error enrichment."""

import sys

import pytest

from shipyard.core.errors import TimeoutExceeded, ToolchainFailure
from shipyard.core.subprocess_utils import run_subprocess_with_context


def test_success_returns_output() -> None:
    """Successful commands return their captured output."""
    result = run_subprocess_with_context(
        [sys.executable, "-c", "print('built')"], operation_context="build unit"
    )

    assert result.stdout.strip() == "built"


def test_non_zero_exit_becomes_toolchain_failure() -> None:
    """Non-zero exits carry the command, exit code and output."""
    script = "import sys; print('compiling'); sys.stderr.write('linker error'); sys.exit(3)"

    with pytest.raises(ToolchainFailure) as exc_info:
        run_subprocess_with_context([sys.executable, "-c", script], operation_context="build unit")

    error = exc_info.value
    assert error.exit_code == 3
    assert "Failed to build unit" in error.message
    assert "stdout: compiling" in error.output
    assert "stderr: linker error" in error.output


def test_check_false_returns_failed_process() -> None:
    """With check=False the caller inspects the exit code itself."""
    result = run_subprocess_with_context(
        [sys.executable, "-c", "import sys; sys.exit(2)"],
        operation_context="run lint",
        check=False,
    )

    assert result.returncode == 2


def test_timeout_becomes_timeout_exceeded() -> None:
    """Commands exceeding the timeout raise TimeoutExceeded."""
    with pytest.raises(TimeoutExceeded, match="Timed out after 0.2s"):
        run_subprocess_with_context(
            [sys.executable, "-c", "import time; time.sleep(5)"],
            operation_context="deploy unit",
            timeout=0.2,
        )


def test_missing_command() -> None:
    """A command that does not exist raises ToolchainFailure without an exit code."""
    with pytest.raises(ToolchainFailure, match="Command not found") as exc_info:
        run_subprocess_with_context(
            ["shipyard-no-such-tool-7f3a"], operation_context="build unit"
        )

    assert exc_info.value.exit_code is None
