# ABOUTME: Exception taxonomy for the Argo CD bootstrap orchestrator
# ABOUTME: Every expected failure derives from BootstrapError and is fatal to the run

"""Exceptions raised by bootstrap stages.

Stages never catch these to continue; the orchestrator turns the first one
into a failed stage result and the CLI exits with status 1.
"""

from __future__ import annotations

from collections.abc import Sequence


class BootstrapError(Exception):
    """Base class for all failures that end a bootstrap run."""


class PreflightError(BootstrapError):
    """Unmet environment precondition (runtime version or missing tools)."""

    def __init__(self, message: str, missing_tools: Sequence[str] = ()) -> None:
        self.missing_tools = tuple(missing_tools)
        super().__init__(message)


class CommandError(BootstrapError):
    """External command exited with a non-zero status."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: int,
        stderr: str = "",
        summary: str | None = None,
    ) -> None:
        self.argv = tuple(argv)
        self.returncode = returncode
        self.stderr = stderr
        self.summary = summary
        super().__init__(str(self))

    def __str__(self) -> str:
        base = f"Command failed ({self.returncode}): {' '.join(self.argv)}"
        if self.summary:
            base = f"{self.summary}: {base}"
        if self.stderr:
            base += f" - {self.stderr.strip()[:200]}"
        return base


class ReadinessTimeout(BootstrapError):
    """A polled condition did not become true before its deadline."""

    def __init__(self, description: str, timeout: float, attempts: int) -> None:
        self.description = description
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(
            f"Timed out after {timeout:g}s ({attempts} attempts) waiting for {description}"
        )


class MissingArtifactError(BootstrapError):
    """An expected input file or post-condition artifact does not exist."""


class ChartVersionError(BootstrapError):
    """The pinned chart version is not published by the chart repository."""


class DashboardError(BootstrapError):
    """A dashboard file cannot be stored in the dashboards ConfigMap."""
