# ABOUTME: Preflight checks for the bootstrap orchestrator
# ABOUTME: Verifies the Python runtime version and that required tools are on PATH

"""Preflight checks run before any cluster command."""

from __future__ import annotations

import shutil
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = structlog.get_logger(__name__)


@dataclass
class PreflightFailure:
    """Result of a failed preflight check."""

    check: str
    reason: str
    missing: tuple[str, ...] = field(default_factory=tuple)

    def format_message(self) -> str:
        """Format failure for the console and session log."""
        return f"PREFLIGHT FAILED: {self.check}\nReason: {self.reason}"


def format_version(version: Sequence[int]) -> str:
    return ".".join(str(part) for part in version)


def check_runtime(
    minimum: tuple[int, int],
    version_info: Sequence[int] | None = None,
) -> PreflightFailure | None:
    """Check the interpreter version.

    Args:
        minimum: Lowest accepted (major, minor).
        version_info: Version to check, defaults to the running interpreter.

    Returns:
        PreflightFailure if too old, None if acceptable.
    """
    current = tuple(version_info if version_info is not None else sys.version_info[:3])
    if current[:2] < tuple(minimum):
        return PreflightFailure(
            check="runtime",
            reason=(
                f"Python version is lower than {format_version(minimum)}: "
                f"{format_version(current)}"
            ),
        )
    return None


def find_missing_tools(
    tools: Sequence[str],
    which: Callable[[str], str | None] | None = None,
) -> tuple[str, ...]:
    """Return the tools that cannot be resolved, in the order given."""
    which = which or shutil.which
    missing = []
    for tool in tools:
        if which(tool) is None:
            missing.append(tool)
        else:
            logger.debug("Tool found", tool=tool)
    return tuple(missing)


def check_tools(
    tools: Sequence[str],
    which: Callable[[str], str | None] | None = None,
) -> PreflightFailure | None:
    """Check every required tool is resolvable.

    Returns:
        PreflightFailure naming exactly the missing tools, None if all present.
    """
    missing = find_missing_tools(tools, which)
    if missing:
        return PreflightFailure(
            check="tools",
            reason=f"Cannot run some of the tools: '{' '.join(missing)}'",
            missing=missing,
        )
    return None
