"""
Standardized error handling and exit codes for the canonsync CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

from enum import IntEnum

from rich.console import Console

from canonsync.core.content.errors import ContentError, MalformedInputError

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for canonsync CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Unexpected error."""

    USER_ERROR = 2
    """Configuration or input error (actionable by user)."""

    VALIDATION_FAILED = 3
    """At least one content file failed to parse, validate or align its assets."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Content directory not found",
        ...     reason="content/ does not exist",
        ...     solution="canonsync check path/to/content",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_content_error(error: ContentError) -> None:
    """Print a content pipeline error, one line per parse issue."""
    if isinstance(error, MalformedInputError):
        print_error(f"Malformed input in {error.source}")
        for issue in error.issues:
            console.print(f"  [yellow]{issue.path or '<root>'}[/yellow]: {issue.message}")
        return
    print_error(str(error))


def print_content_dir_not_found_error(path: str) -> None:
    """Print error when the content root does not exist."""
    print_error(
        f"Content directory not found: {path}",
        reason="Pass ROOT or set sync.content_dir in .canonsync.json",
        solution="canonsync check path/to/content",
    )
