# ABOUTME: Immutable per-run session context for the bootstrap orchestrator
# ABOUTME: Bundles settings, session log and tool clients built once at startup

"""Session context passed to every stage."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from argocd_bootstrap.utils.client import HelmClient, KubectlClient, MinikubeClient
from argocd_bootstrap.utils.logging import SessionLog, new_session_id, session_log_path
from argocd_bootstrap.utils.runner import CommandRunner

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from pathlib import Path

    from argocd_bootstrap.config import BootstrapSettings


@dataclass(frozen=True)
class SessionContext:
    """Everything a stage needs, fixed for the lifetime of the run.

    Stages receive this explicitly instead of reading module globals, so a
    test can hand a stage a context wired to fake clients.
    """

    session_id: str
    settings: BootstrapSettings
    session_log: SessionLog
    runner: CommandRunner
    kubectl: KubectlClient
    helm: HelmClient
    minikube: MinikubeClient
    sleep: Callable[[float], None] = field(default=time.sleep)

    @property
    def log_path(self) -> Path:
        return self.session_log.path


def create_context(settings: BootstrapSettings, now: datetime | None = None) -> SessionContext:
    """Build the session context: session id, log file, runner and clients."""
    session_id = new_session_id(now)
    session_log = SessionLog(
        session_log_path(settings.log_dir, session_id),
        session_id,
        mask=settings.mask_secrets,
    )
    runner = CommandRunner(session_log=session_log, cwd=settings.base_dir)
    return SessionContext(
        session_id=session_id,
        settings=settings,
        session_log=session_log,
        runner=runner,
        kubectl=KubectlClient(runner),
        helm=HelmClient(runner),
        minikube=MinikubeClient(runner),
    )
