"""JSON output utilities for CLI commands with machine-parseable output."""

import json
from collections.abc import Callable
from dataclasses import asdict, is_dataclass
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shipyard.cli.output import machine_output
from shipyard.core.errors import ShipyardError


class ErrorResponse(BaseModel):
    """Pydantic model for error JSON responses.

    Attributes:
        error: Error message
        error_type: Error class name (e.g., "InvalidIdentifier")
        exit_code: Exit code for the process
        last_good_backup_id: Newest backup a human can restore from, if any
    """

    model_config = ConfigDict(strict=True)

    error: str
    error_type: str
    exit_code: int = Field(default=1, ge=0, le=255)
    last_good_backup_id: str | None = None


def _serialize_for_json(obj: Any) -> Any:
    """Recursively serialize special types for JSON.

    Handles Path, datetime, and dataclass instances that appear in
    plain dict structures (not Pydantic models).

    For Pydantic models, use model.model_dump(mode='json') to convert
    to dict, then pass to emit_json().
    """
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if is_dataclass(obj) and not isinstance(obj, type):
        return _serialize_for_json(asdict(obj))
    if isinstance(obj, dict):
        return {key: _serialize_for_json(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize_for_json(item) for item in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted(_serialize_for_json(item) for item in obj)
    return obj


def emit_json(data: dict[str, Any]) -> None:
    """Output JSON data to stdout for machine consumption.

    Routes JSON through machine_output() to ensure correct stream
    separation (data on stdout, human messages on stderr).
    """
    serialized = _serialize_for_json(data)
    machine_output(json.dumps(serialized, indent=2))


def emit_json_error(
    error: str, error_type: str, exit_code: int = 1, last_good_backup_id: str | None = None
) -> None:
    """Output error as JSON and exit.

    Raises:
        SystemExit: Always raises to terminate with specified exit code
    """
    error_response = ErrorResponse(
        error=error,
        error_type=error_type,
        exit_code=exit_code,
        last_good_backup_id=last_good_backup_id,
    )
    emit_json(error_response.model_dump(mode="json"))
    raise SystemExit(exit_code)


def json_error_boundary(func: Callable) -> Callable:
    """Decorator to emit shipyard errors as JSON when in JSON mode.

    Inspects function kwargs for a 'format' parameter. If format == "json",
    catches ShipyardError and outputs a structured JSON error. Otherwise
    the exception propagates to the text error boundary.

    Example:
        @click.command()
        @click.option("--format", type=click.Choice(["text", "json"]), default="text")
        @cli_error_boundary
        @json_error_boundary
        def my_command(format: str) -> None:
            ...
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ShipyardError as e:
            if kwargs.get("format", "text") != "json":
                raise
            emit_json_error(
                e.message,
                type(e).__name__,
                exit_code=1,
                last_good_backup_id=e.last_good_backup_id,
            )

    return wrapper
