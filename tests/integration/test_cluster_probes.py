# ABOUTME: Integration tests for the kubectl client against a live minikube cluster
# ABOUTME: Requires a cluster bootstrapped with Argo CD (minikube context by default)

"""Integration tests for cluster probes against a bootstrapped cluster.

These tests require:
- a cluster reachable through context 'minikube' (override with TEST_K8S_CONTEXT)
- Argo CD installed in the 'argo-cd' namespace
- kubectl available in PATH

They only read from the cluster; nothing is created or deleted.
"""

from __future__ import annotations

import os
import subprocess

import pytest

from argocd_bootstrap.utils.client import KubectlClient
from argocd_bootstrap.utils.runner import CommandRunner

ARGOCD_NAMESPACE = os.environ.get("TEST_ARGOCD_NAMESPACE", "argo-cd")


def _kubectl_context() -> str:
    """Return the kubectl context to use for tests."""
    return os.environ.get("TEST_K8S_CONTEXT", "minikube")


def _is_argocd_available() -> bool:
    """Check if Argo CD is running on the cluster."""
    try:
        result = subprocess.run(
            [
                "kubectl", "--context", _kubectl_context(), "get", "pods",
                "-n", ARGOCD_NAMESPACE, "-l", "app.kubernetes.io/name=argocd-server",
            ],
            capture_output=True,
            text=True,
            timeout=10,
        )
        return result.returncode == 0 and "Running" in result.stdout
    except (subprocess.SubprocessError, FileNotFoundError):
        return False


requires_argocd = pytest.mark.skipif(
    not _is_argocd_available(),
    reason="Argo CD not available on the test cluster",
)


@pytest.fixture(scope="module")
def kubectl() -> KubectlClient:
    return KubectlClient(CommandRunner(timeout=30), context=_kubectl_context())


@pytest.mark.integration
@requires_argocd
class TestClusterProbesIntegration:
    """Read-only probes against a bootstrapped cluster."""

    def test_nodes_ready(self, kubectl: KubectlClient):
        """Test at least one node reports Ready."""
        assert kubectl.ready_node_count() >= 1

    def test_namespace_probe(self, kubectl: KubectlClient):
        """Test the probe sees Argo CD's namespace and not a made-up one."""
        assert kubectl.namespace_exists(ARGOCD_NAMESPACE)
        assert not kubectl.namespace_exists("argocd-bootstrap-does-not-exist")

    def test_controller_available(self, kubectl: KubectlClient):
        """Test the Argo CD Deployments are available."""
        assert kubectl.deployments_available(ARGOCD_NAMESPACE)

    def test_applications_listed(self, kubectl: KubectlClient):
        """Test live Applications parse and match the names probe."""
        apps = kubectl.list_applications(ARGOCD_NAMESPACE)

        assert {app.name for app in apps} == kubectl.application_names(ARGOCD_NAMESPACE)
