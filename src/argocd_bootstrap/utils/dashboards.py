# ABOUTME: Client-side generation of the Grafana dashboards ConfigMap
# ABOUTME: Packs every dashboard file into one ConfigMap rendered as deterministic YAML

"""
Grafana dashboards ConfigMap generation.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Grafana's dashboard sidecar loads dashboards from ConfigMaps. All dashboard
files in one directory are packed into a single ConfigMap, one key per file:

    apiVersion: v1
    kind: ConfigMap
    metadata:
      name: grafana-dashboards-kubernetes
      namespace: grafana
    data:
      k8s-views-global.json: '{"title": ...}'
      k8s-views-nodes.json: '{"title": ...}'

The manifest is generated here, on the client, and then applied with
server-side apply. Generating instead of creating imperatively means a rerun
produces the same document and converges on the same object, rather than
failing with "already exists" or duplicating anything.

=============================================================================
DETERMINISM
=============================================================================

Files are read in sorted order and YAML is dumped with sorted keys, so the
same directory always renders to byte-identical text.
"""

from __future__ import annotations

import base64
import re
from typing import TYPE_CHECKING, Any

import yaml

from argocd_bootstrap.errors import DashboardError, MissingArtifactError

if TYPE_CHECKING:
    from pathlib import Path

# Kubernetes ConfigMap key syntax.
CONFIGMAP_KEY = re.compile(r"^[-._a-zA-Z0-9]+$")

# Total size limit of a ConfigMap's data, enforced by the API server.
CONFIGMAP_MAX_BYTES = 1024 * 1024


def build_dashboards_configmap(directory: Path, name: str, namespace: str) -> dict[str, Any]:
    """
    Build a ConfigMap manifest from every regular file in directory.

    Subdirectories are skipped. UTF-8 files go to ``data``; anything else is
    base64 encoded into ``binaryData``, as ``kubectl create configmap
    --from-file`` does.

    Args:
        directory: Directory of dashboard definitions.
        name: ConfigMap name.
        namespace: Target namespace.

    Returns:
        ConfigMap manifest as a dictionary.

    Raises:
        MissingArtifactError: If directory is missing or holds no files.
        DashboardError: If a file name is not a valid key, a file cannot be read,
            or the total is too large.
    """
    if not directory.is_dir():
        raise MissingArtifactError(f"Dashboards directory not found: {directory}")

    data: dict[str, str] = {}
    binary_data: dict[str, str] = {}
    total = 0

    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise DashboardError(f"Cannot list dashboards directory {directory}: {e}") from e

    for path in entries:
        if not path.is_file():
            continue
        key = path.name
        if not CONFIGMAP_KEY.match(key):
            raise DashboardError(f"Dashboard file name is not a valid ConfigMap key: {key}")

        try:
            raw = path.read_bytes()
        except OSError as e:
            raise DashboardError(f"Cannot read dashboard file {path}: {e}") from e
        total += len(raw)
        try:
            data[key] = raw.decode("utf-8")
        except UnicodeDecodeError:
            binary_data[key] = base64.b64encode(raw).decode("ascii")

    if not data and not binary_data:
        raise MissingArtifactError(f"No dashboard files found in {directory}")

    if total > CONFIGMAP_MAX_BYTES:
        raise DashboardError(
            f"Dashboards in {directory} total {total} bytes, "
            f"more than the {CONFIGMAP_MAX_BYTES} bytes a ConfigMap can hold"
        )

    manifest: dict[str, Any] = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": namespace},
        "data": data,
    }
    if binary_data:
        manifest["binaryData"] = binary_data
    return manifest


def render_manifest(manifest: dict[str, Any]) -> str:
    """Render a manifest as YAML with sorted keys."""
    return yaml.safe_dump(
        manifest,
        sort_keys=True,
        default_flow_style=False,
        allow_unicode=True,
    )
