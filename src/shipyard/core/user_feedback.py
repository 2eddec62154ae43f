"""User-facing diagnostic output with mode awareness."""

from abc import ABC, abstractmethod

import click

from shipyard.cli.output import user_output


class UserFeedback(ABC):
    """Provides user-facing progress output that's mode-aware.

    Subsystems report progress through ``ctx.feedback`` instead of threading
    a "quiet" flag through every signature.

    Two modes:
    - Interactive: Show all diagnostics (info, success, warnings, errors)
    - Machine (``--format json``): Suppress diagnostics, only show errors

    Usage:
        ctx.feedback.info("Building 5 units...")
        ctx.feedback.warning("Health check failed for frontend")
        ctx.feedback.success("✓ Deployment complete")
    """

    @abstractmethod
    def info(self, message: str) -> None:
        """Show informational message (suppressed in machine mode)."""

    @abstractmethod
    def success(self, message: str) -> None:
        """Show success message (suppressed in machine mode)."""

    @abstractmethod
    def warning(self, message: str) -> None:
        """Show warning message (suppressed in machine mode)."""

    @abstractmethod
    def error(self, message: str) -> None:
        """Show error message (always shown)."""


class InteractiveFeedback(UserFeedback):
    """Feedback shown in interactive mode (all messages)."""

    def info(self, message: str) -> None:
        user_output(message)

    def success(self, message: str) -> None:
        user_output(click.style(message, fg="green"))

    def warning(self, message: str) -> None:
        user_output(click.style(message, fg="yellow"))

    def error(self, message: str) -> None:
        user_output(click.style(message, fg="red"))


class SuppressedFeedback(UserFeedback):
    """Feedback for machine-readable output modes (only errors shown)."""

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        user_output(click.style(message, fg="red"))
