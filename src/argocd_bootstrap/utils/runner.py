# ABOUTME: External command execution for the bootstrap orchestrator
# ABOUTME: Runs helm/kubectl/minikube with captured output and explicit exit-status checks

"""
Command runner with explicit exit-status checks.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Every side effect of a bootstrap run happens through an external tool. This
module is the single place those tools are launched. It:

1. RUNS a command with captured stdout/stderr (nothing leaks to the console)
2. RECORDS the full result in the session log
3. CHECKS the exit status and raises CommandError on failure

A command that cannot even be launched (binary vanished after preflight,
permission denied) is reported as exit status 127, the shell convention for
"command not found", so callers only ever handle one error type.

USAGE:
------
    runner = CommandRunner(session_log=log)
    result = runner.run(["helm", "repo", "add", "argo", url, "--force-update"])
    result.stdout

    # Probes that should not fail the run:
    probe = runner.run(["kubectl", "get", "namespace", "grafana"], check=False)
    if probe.ok: ...
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from argocd_bootstrap.errors import CommandError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from argocd_bootstrap.utils.logging import SessionLog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def raise_for_status(self, summary: str | None = None) -> CommandResult:
        """Raise CommandError unless the command succeeded; return self otherwise."""
        if not self.ok:
            raise CommandError(self.argv, self.returncode, self.stderr, summary=summary)
        return self


class CommandRunner:
    """
    Synchronous subprocess runner.

    Commands run one at a time; the orchestrator is strictly sequential.
    """

    def __init__(
        self,
        session_log: SessionLog | None = None,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize command runner.

        Args:
            session_log: Where full command output is recorded. None disables recording.
            cwd: Default working directory for commands.
            timeout: Per-command timeout in seconds. None waits indefinitely,
                     which suits ``minikube start`` on a cold machine.
        """
        self._session_log = session_log
        self._cwd = cwd
        self._timeout = timeout

    def run(
        self,
        argv: Sequence[str],
        *,
        input_data: str | None = None,
        check: bool = True,
        sensitive: bool = False,
        cwd: Path | None = None,
    ) -> CommandResult:
        """
        Run a command to completion.

        Args:
            argv: Command and arguments. Never passed through a shell.
            input_data: Text written to the command's stdin.
            check: Raise CommandError on non-zero exit.
            sensitive: Mask stdout in the session log.
            cwd: Working directory, overriding the runner default.

        Returns:
            CommandResult with captured output.

        Raises:
            CommandError: If check is True and the command failed.
        """
        argv = tuple(str(a) for a in argv)
        log = logger.bind(command=argv[0])
        log.debug("Running command", argv=" ".join(argv))

        try:
            completed = subprocess.run(
                argv,
                input=input_data,
                capture_output=True,
                text=True,
                check=False,
                cwd=cwd or self._cwd,
                timeout=self._timeout,
            )
            result = CommandResult(argv, completed.returncode, completed.stdout, completed.stderr)
        except (FileNotFoundError, PermissionError) as e:
            result = CommandResult(argv, 127, "", str(e))
        except subprocess.TimeoutExpired as e:
            result = CommandResult(argv, 124, "", f"Timed out after {e.timeout}s")

        if self._session_log is not None:
            self._session_log.record_command(
                argv, result.returncode, result.stdout, result.stderr, sensitive=sensitive
            )

        if not result.ok:
            log.debug("Command failed", returncode=result.returncode)
            if check:
                result.raise_for_status()

        return result
