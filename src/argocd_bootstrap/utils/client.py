# ABOUTME: Typed wrappers around the kubectl, helm and minikube command-line tools
# ABOUTME: Builds argument lists, parses JSON output and exposes Argo CD Application views

"""
Cluster tool clients.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

The orchestrator talks to three tools. Each gets a small client class that
knows how to spell its commands, so stages read as intent rather than as
argument lists:

    KubectlClient   apply, patch, taint, get (JSON) against the cluster API
    HelmClient      repository registration and chart install/upgrade
    MinikubeClient  local cluster start

All clients run commands through a CommandRunner, so every call is recorded
in the session log and every failure surfaces as CommandError.

=============================================================================
MUTATIONS VS PROBES
=============================================================================

Mutating calls (apply, patch, taint, install) always check the exit status:
a failure ends the run.

Probe calls (namespace_exists, ready_node_count, get_application, ...) are
used by readiness polling. They run with check=False and report "not there
yet" instead of raising, because during bring-up a failing ``kubectl get``
is expected until the resource appears.
"""

# =============================================================================
# IMPORTS
# =============================================================================

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
import yaml

from argocd_bootstrap.errors import CommandError, MissingArtifactError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from argocd_bootstrap.utils.runner import CommandResult, CommandRunner

logger = structlog.get_logger(__name__)

# Fully qualified resource name, avoids clashes with other "Application" CRDs.
APPLICATION_RESOURCE = "applications.argoproj.io"

# Kind prefix kubectl prints for Applications with ``-o name``.
APPLICATION_NAME_PREFIX = "application.argoproj.io"


# =============================================================================
# APPLICATION DATA CLASS
# =============================================================================


@dataclass
class Application:
    """
    Argo CD Application as seen in the live cluster.

    ``kubectl get applications.argoproj.io -o json`` returns the full custom
    resource; this class keeps the fields the orchestrator acts on:

    - name / namespace: identity, used to patch a sync operation onto it
    - project: Argo CD project the Application belongs to
    - sync_status: "Synced", "OutOfSync" or "Unknown"
    - health_status: "Healthy", "Progressing", "Degraded", "Missing", "Unknown"
    - operation_state: last or current operation (phase, message)
    """

    name: str
    namespace: str
    project: str
    sync_status: str
    health_status: str
    operation_state: dict[str, Any] | None = None

    @classmethod
    def from_resource(cls, data: dict[str, Any]) -> Application:
        """
        Create Application from a Kubernetes resource document.

        Missing sections fall back to Argo CD's own defaults, so a freshly
        created Application without a status block still parses.
        """
        metadata = data.get("metadata", {})
        spec = data.get("spec", {})
        status = data.get("status", {})

        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            project=spec.get("project", "default"),
            sync_status=status.get("sync", {}).get("status", "Unknown"),
            health_status=status.get("health", {}).get("status", "Unknown"),
            operation_state=status.get("operationState"),
        )

    @property
    def synced(self) -> bool:
        return self.sync_status == "Synced"


def load_patch_file(path: Path) -> dict[str, Any]:
    """
    Load a merge patch from a YAML file.

    The Argo CD checkout ships the patch that forces a sync, e.g.:

        operation:
          initiatedBy:
            username: admin
          sync:
            syncStrategy:
              hook: {}

    Argo CD picks up the ``operation`` field, runs the sync and clears the
    field when done. Whatever sync options the file sets are passed through.

    Raises:
        MissingArtifactError: If the file is missing, unreadable or not a mapping.
    """
    try:
        patch = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise MissingArtifactError(f"Sync patch file not found: {path}") from None
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise MissingArtifactError(f"Cannot read sync patch file {path}: {e}") from e

    if not isinstance(patch, dict) or not patch:
        raise MissingArtifactError(f"Sync patch file {path} does not hold a YAML mapping")
    return patch


# =============================================================================
# KUBECTL
# =============================================================================


class KubectlClient:
    """kubectl wrapper for the handful of verbs the bootstrap needs."""

    def __init__(self, runner: CommandRunner, context: str | None = None) -> None:
        """
        Args:
            runner: Command runner used for every invocation.
            context: kubeconfig context. None uses the current context, which
                     ``minikube start`` switches to the new cluster.
        """
        self._runner = runner
        self._context = context

    def _argv(self, *args: str, namespace: str | None = None) -> list[str]:
        argv = ["kubectl"]
        if self._context:
            argv += ["--context", self._context]
        if namespace:
            argv += ["-n", namespace]
        argv += list(args)
        return argv

    # -------------------------------------------------------------------------
    # MUTATIONS
    # -------------------------------------------------------------------------

    def apply_file(self, path: Path) -> list[str]:
        """
        Apply a manifest file.

        Returns:
            Resource names reported by kubectl, e.g.
            ``["application.argoproj.io/grafana"]``.
        """
        result = self._runner.run(self._argv("apply", "-f", str(path), "-o", "name"))
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def apply_manifest(
        self,
        manifest: str,
        *,
        server_side: bool = False,
        force_conflicts: bool = False,
        field_manager: str | None = None,
    ) -> CommandResult:
        """
        Apply a manifest passed on stdin.

        Server-side apply with forced conflicts makes the caller the owner of
        every field it sets, so reapplying identical content converges to
        the same object instead of failing on conflicts.
        """
        args = ["apply"]
        if server_side:
            args.append("--server-side=true")
        if force_conflicts:
            args.append("--force-conflicts")
        if field_manager:
            args += ["--field-manager", field_manager]
        args += ["-f", "-"]
        return self._runner.run(self._argv(*args), input_data=manifest)

    def patch_merge(
        self,
        kind: str,
        name: str,
        patch: dict[str, Any],
        namespace: str | None = None,
    ) -> CommandResult:
        """Apply a JSON merge patch to one resource."""
        return self._runner.run(
            self._argv(
                "patch",
                kind,
                name,
                "--type",
                "merge",
                "--patch",
                json.dumps(patch, sort_keys=True),
                namespace=namespace,
            )
        )

    def taint_node(self, node: str, taint: str, overwrite: bool = True) -> CommandResult:
        """Taint a node. With overwrite, re-tainting an already tainted node succeeds."""
        args = ["taint", "nodes", node, taint]
        if overwrite:
            args.append("--overwrite")
        return self._runner.run(self._argv(*args))

    # -------------------------------------------------------------------------
    # QUERIES
    # -------------------------------------------------------------------------

    def get_json(
        self,
        *args: str,
        namespace: str | None = None,
        check: bool = True,
    ) -> dict[str, Any] | None:
        """
        Run ``kubectl get ... -o json``.

        Returns:
            Parsed document, or None when check is False and the command
            failed or printed something that is not JSON.

        Raises:
            CommandError: If check is True and the command failed or its
                          output is not JSON.
        """
        result = self._runner.run(
            self._argv("get", *args, "-o", "json", namespace=namespace), check=check
        )
        if not result.ok:
            return None
        if not result.stdout.strip():
            return {}
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            if not check:
                return None
            raise CommandError(
                result.argv, result.returncode, f"Output is not JSON: {e}"
            ) from e

    def list_applications(self, namespace: str) -> list[Application]:
        """List live Argo CD Applications in a namespace."""
        data = self.get_json(APPLICATION_RESOURCE, namespace=namespace) or {}
        return [Application.from_resource(item) for item in data.get("items") or []]

    # -------------------------------------------------------------------------
    # PROBES (never raise on a failed command)
    # -------------------------------------------------------------------------

    def get_application(self, namespace: str, name: str) -> Application | None:
        data = self.get_json(APPLICATION_RESOURCE, name, namespace=namespace, check=False)
        return Application.from_resource(data) if data else None

    def application_names(self, namespace: str) -> set[str]:
        data = self.get_json(APPLICATION_RESOURCE, namespace=namespace, check=False) or {}
        return {Application.from_resource(item).name for item in data.get("items") or []}

    def namespace_exists(self, name: str) -> bool:
        return self._runner.run(self._argv("get", "namespace", name, "-o", "name"), check=False).ok

    def ready_node_count(self) -> int:
        """Number of nodes whose Ready condition is True."""
        data = self.get_json("nodes", check=False) or {}
        ready = 0
        for node in data.get("items") or []:
            for condition in node.get("status", {}).get("conditions", []):
                if condition.get("type") == "Ready" and condition.get("status") == "True":
                    ready += 1
                    break
        return ready

    def deployments_available(self, namespace: str) -> bool:
        """
        True when the namespace has Deployments and all of them are fully available.

        An empty namespace counts as not ready: right after ``helm upgrade
        --install`` the Deployments may not be listed yet.
        """
        data = self.get_json("deployments", namespace=namespace, check=False) or {}
        items = data.get("items") or []
        if not items:
            return False
        for deployment in items:
            wanted = deployment.get("spec", {}).get("replicas", 1)
            available = deployment.get("status", {}).get("availableReplicas", 0)
            if available < wanted:
                return False
        return True

    def secret_key_present(self, namespace: str, name: str, key: str) -> bool:
        """
        True when a secret exists and holds a non-empty value under key.

        The value itself is masked in the session log and never returned.
        """
        result = self._runner.run(
            self._argv(
                "get", "secret", name, "-o", f"jsonpath={{.data.{key}}}", namespace=namespace
            ),
            check=False,
            sensitive=True,
        )
        return result.ok and bool(result.stdout.strip())


# =============================================================================
# HELM
# =============================================================================


class HelmClient:
    """helm wrapper for repository registration and release install/upgrade."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def repo_add(self, name: str, url: str, force_update: bool = True) -> CommandResult:
        """Register a chart repository. With force_update an existing entry is replaced."""
        argv = ["helm", "repo", "add", name, url]
        if force_update:
            argv.append("--force-update")
        return self._runner.run(argv)

    def upgrade_install(
        self,
        release: str,
        chart_ref: str,
        version: str,
        namespace: str,
        create_namespace: bool = True,
        values_file: Path | None = None,
    ) -> CommandResult:
        """Install the release, or upgrade it when it already exists."""
        argv = [
            "helm",
            "upgrade",
            release,
            chart_ref,
            "--version",
            version,
            "--install",
            "--namespace",
            namespace,
        ]
        if create_namespace:
            argv.append("--create-namespace")
        if values_file is not None:
            argv += ["--values", str(values_file)]
        return self._runner.run(argv)


# =============================================================================
# MINIKUBE
# =============================================================================


class MinikubeClient:
    """minikube wrapper."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def start(
        self,
        memory: int,
        nodes: int,
        addons: Sequence[str] = (),
        profile: str | None = None,
    ) -> CommandResult:
        argv = ["minikube", "start", "--memory", str(memory), "--nodes", str(nodes)]
        for addon in addons:
            argv += ["--addons", addon]
        if profile:
            argv += ["--profile", profile]
        return self._runner.run(argv)
