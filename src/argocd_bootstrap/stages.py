# ABOUTME: The five bootstrap stages, from preflight checks to the dashboards ConfigMap
# ABOUTME: Each stage checks its own commands and raises BootstrapError on the first failure

"""Bootstrap stages.

Each stage takes the session context, performs its side effects and returns
nothing. Any failure raises a BootstrapError subclass; nothing is retried or
rolled back.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from argocd_bootstrap.errors import (
    CommandError,
    MissingArtifactError,
    PreflightError,
    ReadinessTimeout,
)
from argocd_bootstrap.utils.charts import verify_chart_version
from argocd_bootstrap.utils.client import APPLICATION_NAME_PREFIX, load_patch_file
from argocd_bootstrap.utils.dashboards import build_dashboards_configmap, render_manifest
from argocd_bootstrap.utils.discovery import discover_application_files
from argocd_bootstrap.utils.preflight import check_runtime, check_tools
from argocd_bootstrap.utils.readiness import wait_until

if TYPE_CHECKING:
    from argocd_bootstrap.context import SessionContext

logger = structlog.get_logger(__name__)


# =============================================================================
# 1. ENVIRONMENT VALIDATION
# =============================================================================


def preflight_checks(ctx: SessionContext) -> None:
    """Check the Python runtime and required tools. Runs no commands."""
    log = logger.bind(stage="preflight_checks")
    log.info("Starting preflight checks")

    log.info("Checking Python version")
    failure = check_runtime(ctx.settings.min_python)
    if failure:
        raise PreflightError(failure.reason)

    log.info("Checking if tools are available", tools=ctx.settings.required_tools)
    failure = check_tools(ctx.settings.required_tools)
    if failure:
        raise PreflightError(failure.reason, missing_tools=failure.missing)


# =============================================================================
# 2. CLUSTER BRING-UP
# =============================================================================


def start_cluster(ctx: SessionContext) -> None:
    """Start minikube, wait for the nodes, taint the control plane."""
    log = logger.bind(stage="start_cluster")
    cluster = ctx.settings.cluster
    wait = ctx.settings.readiness
    log.info("Starting and configuring the minikube cluster")

    log.info("Starting the minikube cluster", memory=cluster.memory, nodes=cluster.nodes)
    ctx.minikube.start(cluster.memory, cluster.nodes, cluster.addons, cluster.profile)

    wait_until(
        lambda: ctx.kubectl.ready_node_count() >= cluster.nodes,
        description=f"{cluster.nodes} Ready node(s)",
        timeout=wait.cluster_timeout,
        interval=wait.interval,
        sleep=ctx.sleep,
    )

    log.info("Tainting the control plane node", node=cluster.control_plane_node)
    ctx.kubectl.taint_node(cluster.control_plane_node, cluster.control_plane_taint)


# =============================================================================
# 3. CONTROLLER INSTALLATION
# =============================================================================


def install_controller(ctx: SessionContext) -> None:
    """Install or upgrade the Argo CD chart and wait for it to come up."""
    log = logger.bind(stage="install_controller")
    chart = ctx.settings.chart
    wait = ctx.settings.readiness
    log.info("Deploying Argo CD")

    if chart.verify_version:
        log.info("Verifying chart version", chart=chart.chart, version=chart.version)
        verify_chart_version(chart.repo_url, chart.chart, chart.version, chart.index_timeout)

    log.info("Adding Argo CD Helm repository", url=chart.repo_url)
    try:
        ctx.helm.repo_add(chart.repo_name, chart.repo_url)
    except CommandError as e:
        e.summary = f"Unable to add Argo CD Helm repo {chart.repo_url}"
        raise

    values_file = ctx.settings.chart_values_path
    if values_file is not None and not values_file.is_file():
        raise MissingArtifactError(f"Helm values file not found: {values_file}")

    log.info("Installing Argo CD Helm chart", version=chart.version, namespace=chart.namespace)
    try:
        ctx.helm.upgrade_install(
            chart.release,
            chart.chart_ref,
            chart.version,
            chart.namespace,
            values_file=values_file,
        )
    except CommandError as e:
        e.summary = f"Unable to install Argo CD Helm Chart {chart.version}"
        raise

    wait_until(
        lambda: ctx.kubectl.deployments_available(chart.namespace),
        description=f"Argo CD deployments in {chart.namespace}",
        timeout=wait.controller_timeout,
        interval=wait.interval,
        sleep=ctx.sleep,
    )

    log.info("Checking Argo CD initial password to be created")
    try:
        wait_until(
            lambda: ctx.kubectl.secret_key_present(
                chart.namespace, ctx.settings.admin_secret, "password"
            ),
            description=f"secret {ctx.settings.admin_secret}",
            timeout=wait.controller_timeout,
            interval=wait.interval,
            sleep=ctx.sleep,
        )
    except ReadinessTimeout as e:
        raise MissingArtifactError("Cannot read Argo CD initial password secret") from e


# =============================================================================
# 4. APPLICATION REGISTRATION
# =============================================================================


def register_applications(ctx: SessionContext) -> None:
    """Apply the project and root app, then every Application file, then sync all."""
    log = logger.bind(stage="register_applications")
    settings = ctx.settings
    namespace = settings.chart.namespace
    wait = settings.readiness
    log.info("Installing Argo CD applications", directory=str(settings.argocd_dir))

    if not settings.argocd_dir.is_dir():
        raise MissingArtifactError(f"Argo CD directory not found: {settings.argocd_dir}")

    patch = load_patch_file(settings.sync_patch_path)

    log.info("Deploying Argo CD project", file=settings.project_manifest)
    ctx.kubectl.apply_file(settings.project_manifest_path)

    log.info("Deploying Argo CD manifests Application", file=settings.root_manifest)
    ctx.kubectl.apply_file(settings.root_manifest_path)
    ctx.kubectl.patch_merge("Application", settings.root_application, patch, namespace=namespace)

    wait_until(
        lambda: _is_synced(ctx, namespace, settings.root_application),
        description=f"Application {settings.root_application} to sync",
        timeout=wait.applications_timeout,
        interval=wait.interval,
        sleep=ctx.sleep,
    )

    files = discover_application_files(settings.applications_path, settings.application_pattern)
    if not files:
        raise MissingArtifactError(
            f"No files matching {settings.application_pattern} in {settings.applications_path}"
        )

    log.info("Deploying Argo CD Apps one by one", count=len(files))
    created: set[str] = set()
    for path in files:
        log.info("Applying application", file=str(path.relative_to(settings.argocd_dir)))
        try:
            names = ctx.kubectl.apply_file(path)
        except CommandError as e:
            e.summary = f"Unable to apply {path.name}"
            raise
        created.update(_application_names(names))

    wait_until(
        lambda: created <= ctx.kubectl.application_names(namespace),
        description=f"{len(created)} Application(s) to appear",
        timeout=wait.applications_timeout,
        interval=wait.interval,
        sleep=ctx.sleep,
    )

    log.info("Applying initial Argo CD Apps sync")
    for app in ctx.kubectl.list_applications(namespace):
        log.info("Syncing application", application=app.name, sync=app.sync_status)
        ctx.kubectl.patch_merge("Application", app.name, patch, namespace=namespace)


def _is_synced(ctx: SessionContext, namespace: str, name: str) -> bool:
    app = ctx.kubectl.get_application(namespace, name)
    return app is not None and app.synced


def _application_names(resources: list[str]) -> set[str]:
    """Names of Applications among ``kind.group/name`` strings printed by kubectl."""
    names = set()
    for resource in resources:
        kind, _, name = resource.partition("/")
        if kind == APPLICATION_NAME_PREFIX and name:
            names.add(name)
    return names


# =============================================================================
# 5. AUXILIARY RESOURCES
# =============================================================================


def provision_dashboards(ctx: SessionContext) -> None:
    """Generate the dashboards ConfigMap and server-side apply it."""
    log = logger.bind(stage="provision_dashboards")
    settings = ctx.settings
    wait = settings.readiness

    wait_until(
        lambda: ctx.kubectl.namespace_exists(settings.dashboards_namespace),
        description=f"namespace {settings.dashboards_namespace}",
        timeout=wait.namespace_timeout,
        interval=wait.interval,
        sleep=ctx.sleep,
    )

    log.info("Deploying Grafana dashboards configmap", name=settings.dashboards_configmap)
    manifest = build_dashboards_configmap(
        settings.dashboards_path,
        settings.dashboards_configmap,
        settings.dashboards_namespace,
    )
    ctx.kubectl.apply_manifest(
        render_manifest(manifest),
        server_side=True,
        force_conflicts=True,
        field_manager=settings.field_manager,
    )
