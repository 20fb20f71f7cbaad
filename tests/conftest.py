# ABOUTME: Pytest fixtures and configuration for the Argo CD bootstrap tests
# ABOUTME: Provides a scripted fake command runner, settings and a session context

import json
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import structlog

from argocd_bootstrap.config import (
    BootstrapSettings,
    ChartSettings,
    ClusterSettings,
    ReadinessSettings,
)
from argocd_bootstrap.context import SessionContext
from argocd_bootstrap.utils.client import (
    APPLICATION_RESOURCE,
    HelmClient,
    KubectlClient,
    MinikubeClient,
)
from argocd_bootstrap.utils.logging import SessionLog
from argocd_bootstrap.utils.runner import CommandResult

SESSION_ID = "20261018120000UTC"


# =============================================================================
# FAKE COMMAND RUNNER
# =============================================================================


@dataclass
class FakeCall:
    """One command issued through the fake runner."""

    argv: tuple[str, ...]
    input_data: str | None
    sensitive: bool


def _token_matches(token: str, arg: str) -> bool:
    """Exact match, or a file name matching the last component of a path."""
    return arg == token or arg.endswith(f"/{token}")


def _matches(pattern: Sequence[str], argv: Sequence[str]) -> bool:
    """True when pattern's tokens appear in argv in the same order."""
    remaining = iter(argv)
    return all(any(_token_matches(token, arg) for arg in remaining) for token in pattern)


class FakeRunner:
    """Scripted stand-in for CommandRunner.

    Responses are registered per argv pattern; the most recently registered
    matching pattern wins. A pattern registered with several outputs returns
    them in turn and then keeps repeating the last one, which is how polling
    probes are scripted. Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: list[FakeCall] = []
        self._rules: list[tuple[tuple[str, ...], list[tuple[int, str, str]]]] = []

    def respond(
        self,
        *pattern: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self._rules.append((pattern, [(returncode, stdout, stderr)]))

    def respond_sequence(self, *pattern: str, outputs: Sequence[tuple[int, str]]) -> None:
        self._rules.append((pattern, [(rc, out, "") for rc, out in outputs]))

    def run(
        self,
        argv: Sequence[str],
        *,
        input_data: str | None = None,
        check: bool = True,
        sensitive: bool = False,
        cwd: Path | None = None,
    ) -> CommandResult:
        argv = tuple(str(a) for a in argv)
        self.calls.append(FakeCall(argv, input_data, sensitive))

        returncode, stdout, stderr = 0, "", ""
        for pattern, outputs in reversed(self._rules):
            if _matches(pattern, argv):
                returncode, stdout, stderr = outputs[0]
                if len(outputs) > 1:
                    outputs.pop(0)
                break

        result = CommandResult(argv, returncode, stdout, stderr)
        if check:
            result.raise_for_status()
        return result

    def commands(self, *pattern: str) -> list[tuple[str, ...]]:
        """Argument vectors of the issued commands matching pattern."""
        return [call.argv for call in self.calls if _matches(pattern, call.argv)]


# =============================================================================
# KUBERNETES DOCUMENTS
# =============================================================================


def node_list(*names: str, ready: bool = True) -> str:
    status = "True" if ready else "False"
    return json.dumps(
        {
            "items": [
                {
                    "metadata": {"name": name},
                    "status": {"conditions": [{"type": "Ready", "status": status}]},
                }
                for name in names
            ]
        }
    )


def deployment_list(*replicas: tuple[int, int]) -> str:
    """Deployments as (wanted, available) pairs."""
    return json.dumps(
        {
            "items": [
                {"spec": {"replicas": wanted}, "status": {"availableReplicas": available}}
                for wanted, available in replicas
            ]
        }
    )


def application(name: str, sync: str = "Synced", namespace: str = "argo-cd") -> dict[str, Any]:
    return {
        "apiVersion": "argoproj.io/v1alpha1",
        "kind": "Application",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"project": "demo"},
        "status": {"sync": {"status": sync}, "health": {"status": "Healthy"}},
    }


def application_list(*names: str) -> str:
    return json.dumps({"items": [application(name) for name in names]})


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def argocd_tree(tmp_path: Path) -> Path:
    """Create a minimal Argo CD checkout under tmp_path/argocd."""
    root = tmp_path / "argocd"
    (root / "manifests").mkdir(parents=True)
    (root / "manifests" / "argocd-project.yaml").write_text("kind: AppProject\n")
    (root / "manifests.yaml").write_text("kind: Application\n")
    (root / "ApplicationManuallySyncPatch.yaml").write_text(
        "operation:\n"
        "  initiatedBy:\n"
        "    username: admin\n"
        "  sync:\n"
        "    syncStrategy:\n"
        "      hook: {}\n"
    )

    apps = root / "applications"
    (apps / "monitoring").mkdir(parents=True)
    (apps / "application-grafana.yaml").write_text("kind: Application\n")
    (apps / "monitoring" / "application-victoria-metrics.yaml").write_text("kind: Application\n")
    (apps / "values.yaml").write_text("not: an application\n")

    dashboards = apps / "values" / "grafana-dashboards"
    dashboards.mkdir(parents=True)
    (dashboards / "k8s-views-global.json").write_text('{"title": "Global"}\n')
    (dashboards / "k8s-views-nodes.json").write_text('{"title": "Nodes"}\n')
    return root


@pytest.fixture
def settings(tmp_path: Path) -> BootstrapSettings:
    """Settings rooted at tmp_path with short readiness deadlines."""
    return BootstrapSettings(
        base_dir=tmp_path,
        log_dir=tmp_path / "logs",
        chart=ChartSettings(verify_version=False),
        cluster=ClusterSettings(nodes=2),
        readiness=ReadinessSettings(
            interval=1,
            cluster_timeout=3,
            controller_timeout=3,
            applications_timeout=3,
            namespace_timeout=3,
        ),
    )


@pytest.fixture
def session_log(settings: BootstrapSettings) -> SessionLog:
    return SessionLog(settings.log_dir / f"sc-{SESSION_ID}.log", SESSION_ID)


@pytest.fixture
def sleeps() -> list[float]:
    """Records readiness sleeps instead of sleeping."""
    return []


@pytest.fixture
def ctx(
    settings: BootstrapSettings,
    session_log: SessionLog,
    fake_runner: FakeRunner,
    sleeps: list[float],
) -> SessionContext:
    """Session context wired to the fake runner."""
    return SessionContext(
        session_id=SESSION_ID,
        settings=settings,
        session_log=session_log,
        runner=fake_runner,  # type: ignore[arg-type]
        kubectl=KubectlClient(fake_runner),  # type: ignore[arg-type]
        helm=HelmClient(fake_runner),  # type: ignore[arg-type]
        minikube=MinikubeClient(fake_runner),  # type: ignore[arg-type]
        sleep=sleeps.append,
    )


@pytest.fixture
def healthy_cluster(fake_runner: FakeRunner) -> FakeRunner:
    """Script every probe and query of a full run to succeed immediately."""
    fake_runner.respond("kubectl", "get", "nodes", stdout=node_list("minikube", "minikube-m02"))
    fake_runner.respond("kubectl", "get", "deployments", stdout=deployment_list((1, 1), (2, 2)))
    fake_runner.respond("kubectl", "get", "secret", stdout="c2VjcmV0")
    fake_runner.respond(
        "kubectl",
        "get",
        APPLICATION_RESOURCE,
        stdout=application_list("manifests", "grafana", "victoria-metrics"),
    )
    fake_runner.respond(
        "kubectl", "get", APPLICATION_RESOURCE, "manifests", stdout=json.dumps(application("manifests"))
    )
    fake_runner.respond(
        "kubectl", "apply", "application-grafana.yaml", stdout="application.argoproj.io/grafana\n"
    )
    fake_runner.respond(
        "kubectl",
        "apply",
        "application-victoria-metrics.yaml",
        stdout="application.argoproj.io/victoria-metrics\n",
    )
    return fake_runner
