# ABOUTME: Configuration management for the Argo CD bootstrap orchestrator
# ABOUTME: Handles environment variables, chart pinning, cluster sizing and readiness deadlines

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module holds every knob the bootstrap run reads. A run has no command
line flags, so the environment (or an optional .env file) is the only way to
change behaviour. Settings are:

1. READ from environment variables (like ARGOCD_CHART_VERSION, MINIKUBE_NODES)
2. VALIDATED at startup (an invalid value stops the run before any command)
3. PASSED to stages through the session context, never read globally

=============================================================================
ARCHITECTURE: ONE CONTAINER, FOUR GROUPS
=============================================================================

1. ChartSettings (ARGOCD_CHART_*): where the Argo CD chart comes from and
   which pinned version gets installed into which namespace.

2. ClusterSettings (MINIKUBE_*): size of the local cluster, its add-ons and
   the taint placed on the control-plane node.

3. ReadinessSettings (BOOTSTRAP_WAIT_*): deadlines for each readiness poll
   and the interval between probes.

4. BootstrapSettings (ARGOCD_BOOTSTRAP_*): layout of the Argo CD checkout,
   required tools, minimum Python, logging, and contains the groups above.

=============================================================================
ENVIRONMENT VARIABLE MAPPING (selection)
=============================================================================

    ARGOCD_BOOTSTRAP_BASE_DIR        -> Directory holding the argocd/ checkout
    ARGOCD_BOOTSTRAP_LOG_DIR         -> Where sc-<session>.log is written
    ARGOCD_BOOTSTRAP_LOG_LEVEL       -> DEBUG, INFO, WARNING, ERROR, CRITICAL
    ARGOCD_CHART_VERSION             -> Pinned argo-cd chart version (9.1.0)
    ARGOCD_CHART_VALUES_FILE         -> Optional Helm values file
    MINIKUBE_MEMORY                  -> Memory in MiB (8192)
    MINIKUBE_NODES                   -> Node count (2)
    BOOTSTRAP_WAIT_CONTROLLER_TIMEOUT -> Seconds to wait for Argo CD (600)
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# HELM CHART
# =============================================================================


class ChartSettings(BaseSettings):
    """
    Argo CD Helm chart reference.

    The version is pinned: the same checkout always installs the same chart.
    Before installing, the repository index can be checked for the pinned
    version so that a typo fails in seconds instead of after cluster start.
    """

    model_config = SettingsConfigDict(env_prefix="ARGOCD_CHART_", extra="ignore")

    repo_name: str = Field(default="argo", description="Local Helm repository alias")
    repo_url: str = Field(
        default="https://argoproj.github.io/argo-helm",
        description="Helm repository URL",
    )
    chart: str = Field(default="argo-cd", description="Chart name inside the repository")
    version: str = Field(default="9.1.0", description="Pinned chart version")
    release: str = Field(default="argo-cd", description="Helm release name")
    namespace: str = Field(default="argo-cd", description="Namespace for Argo CD")
    values_file: Path | None = Field(
        default=None,
        description="Helm values file supplying chart parameters",
    )
    # Relative paths resolve against the base directory, see
    # BootstrapSettings.chart_values_path.

    verify_version: bool = Field(
        default=True,
        description="Check the repository index for the pinned version before installing",
    )
    index_timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout in seconds for fetching the repository index",
    )

    @field_validator("repo_url")
    @classmethod
    def validate_repo_url(cls, v: str) -> str:
        """Ensure URL has a scheme and no trailing slash."""
        if not v.startswith(("http://", "https://")):
            v = f"https://{v}"
        return v.rstrip("/")

    @property
    def chart_ref(self) -> str:
        """Chart reference as Helm expects it, e.g. ``argo/argo-cd``."""
        return f"{self.repo_name}/{self.chart}"


# =============================================================================
# LOCAL CLUSTER
# =============================================================================


class ClusterSettings(BaseSettings):
    """Local minikube cluster shape."""

    model_config = SettingsConfigDict(env_prefix="MINIKUBE_", extra="ignore")

    memory: int = Field(default=8192, gt=0, description="Memory per node in MiB")
    nodes: int = Field(default=2, ge=1, description="Number of cluster nodes")
    addons: list[str] = Field(
        default_factory=lambda: ["metrics-server"],
        description="Add-ons enabled at start",
    )
    # Lists are read from the environment as JSON:
    #   MINIKUBE_ADDONS='["metrics-server", "ingress"]'

    profile: str | None = Field(default=None, description="minikube profile name")
    control_plane_node: str = Field(
        default="minikube",
        description="Node name of the control plane",
    )
    control_plane_taint: str = Field(
        default="node-role.kubernetes.io/master:NoSchedule",
        description="Taint keeping regular workloads off the control plane",
    )


# =============================================================================
# READINESS POLLING
# =============================================================================


class ReadinessSettings(BaseSettings):
    """
    Deadlines for readiness polls.

    Every wait in the run is a bounded poll: probe, sleep the interval,
    probe again, and give up with a timeout error once the deadline passes.
    """

    model_config = SettingsConfigDict(env_prefix="BOOTSTRAP_WAIT_", extra="ignore")

    interval: float = Field(default=5.0, gt=0, description="Seconds between probes")
    cluster_timeout: float = Field(
        default=300.0,
        gt=0,
        description="Seconds to wait for cluster nodes to become Ready",
    )
    controller_timeout: float = Field(
        default=600.0,
        gt=0,
        description="Seconds to wait for Argo CD deployments and admin secret",
    )
    applications_timeout: float = Field(
        default=300.0,
        gt=0,
        description="Seconds to wait for Applications to sync or appear",
    )
    namespace_timeout: float = Field(
        default=300.0,
        gt=0,
        description="Seconds to wait for the dashboards namespace",
    )


# =============================================================================
# MAIN SETTINGS
# =============================================================================


class BootstrapSettings(BaseSettings):
    """
    Top-level configuration container.

    USAGE:
    ------
        settings = load_settings()
        settings.chart.version          # "9.1.0"
        settings.argocd_dir             # <base_dir>/argocd
        settings.readiness.interval     # 5.0
    """

    model_config = SettingsConfigDict(
        env_prefix="ARGOCD_BOOTSTRAP_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # ARGO CD CHECKOUT LAYOUT
    # -------------------------------------------------------------------------

    base_dir: Path = Field(
        default_factory=Path.cwd,
        description="Directory containing the Argo CD checkout",
    )
    argocd_path: str = Field(default="argocd", description="Argo CD directory under base_dir")
    project_manifest: str = Field(
        default="manifests/argocd-project.yaml",
        description="AppProject manifest, relative to the Argo CD directory",
    )
    root_manifest: str = Field(
        default="manifests.yaml",
        description="Root app-of-apps manifest, relative to the Argo CD directory",
    )
    root_application: str = Field(
        default="manifests",
        description="Name of the root Application defined by root_manifest",
    )
    applications_dir: str = Field(
        default="applications",
        description="Directory of Application definitions, relative to the Argo CD directory",
    )
    application_pattern: str = Field(
        default="application*.yaml",
        description="File name pattern of Application definitions",
    )

    # -------------------------------------------------------------------------
    # DASHBOARDS
    # -------------------------------------------------------------------------

    dashboards_dir: str = Field(
        default="applications/values/grafana-dashboards",
        description="Dashboard definitions, relative to the Argo CD directory",
    )
    dashboards_namespace: str = Field(default="grafana", description="Grafana namespace")
    dashboards_configmap: str = Field(
        default="grafana-dashboards-kubernetes",
        description="Name of the generated dashboards ConfigMap",
    )
    field_manager: str = Field(
        default="argocd-bootstrap",
        description="Field manager used for server-side apply",
    )

    # -------------------------------------------------------------------------
    # ARGO CD OBJECTS
    # -------------------------------------------------------------------------

    admin_secret: str = Field(
        default="argocd-initial-admin-secret",
        description="Secret created by Argo CD holding the initial admin password",
    )
    sync_patch_file: str = Field(
        default="ApplicationManuallySyncPatch.yaml",
        description="Merge patch that forces an Application sync, under the Argo CD directory",
    )

    # -------------------------------------------------------------------------
    # PREFLIGHT
    # -------------------------------------------------------------------------

    required_tools: list[str] = Field(
        default_factory=lambda: ["helm", "kubectl", "minikube", "docker"],
        description="Executables that must be resolvable on PATH",
    )
    min_python_version: Annotated[str, Field(pattern=r"^\d+\.\d+$")] = Field(
        default="3.11",
        description="Minimum Python interpreter version, MAJOR.MINOR",
    )

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------

    log_dir: Path = Field(
        default_factory=Path.cwd,
        description="Directory for the per-session log file",
    )
    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="INFO",
        description="Console logging level",
    )
    json_output: bool = Field(default=False, description="Render console logs as JSON")
    mask_secrets: bool = Field(
        default=True,
        description="Mask sensitive values in the session log",
    )

    # -------------------------------------------------------------------------
    # NESTED GROUPS
    # -------------------------------------------------------------------------

    chart: ChartSettings = Field(default_factory=ChartSettings)
    cluster: ClusterSettings = Field(default_factory=ClusterSettings)
    readiness: ReadinessSettings = Field(default_factory=ReadinessSettings)

    # -------------------------------------------------------------------------
    # COMPUTED PATHS
    # -------------------------------------------------------------------------

    @property
    def min_python(self) -> tuple[int, int]:
        """Minimum Python version as a comparable tuple."""
        major, minor = self.min_python_version.split(".")
        return int(major), int(minor)

    @property
    def argocd_dir(self) -> Path:
        return self.base_dir / self.argocd_path

    @property
    def project_manifest_path(self) -> Path:
        return self.argocd_dir / self.project_manifest

    @property
    def root_manifest_path(self) -> Path:
        return self.argocd_dir / self.root_manifest

    @property
    def applications_path(self) -> Path:
        return self.argocd_dir / self.applications_dir

    @property
    def dashboards_path(self) -> Path:
        return self.argocd_dir / self.dashboards_dir

    @property
    def sync_patch_path(self) -> Path:
        return self.argocd_dir / self.sync_patch_file

    @property
    def chart_values_path(self) -> Path | None:
        """Helm values file resolved against base_dir, or None when unset."""
        if self.chart.values_file is None:
            return None
        if self.chart.values_file.is_absolute():
            return self.chart.values_file
        return self.base_dir / self.chart.values_file


# =============================================================================
# SETTINGS LOADER
# =============================================================================


def load_settings() -> BootstrapSettings:
    """
    Load settings from environment with validation.

    If ARGOCD_BOOTSTRAP_ENV_FILE is set, variables are also read from that
    file. Useful for keeping a demo configuration next to the checkout:

        ARGOCD_CHART_VERSION=9.1.0
        MINIKUBE_MEMORY=6144
        BOOTSTRAP_WAIT_INTERVAL=2

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    env_file = os.environ.get("ARGOCD_BOOTSTRAP_ENV_FILE")
    return BootstrapSettings(
        _env_file=env_file,
        chart=ChartSettings(_env_file=env_file),
        cluster=ClusterSettings(_env_file=env_file),
        readiness=ReadinessSettings(_env_file=env_file),
    )
