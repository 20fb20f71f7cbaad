# ABOUTME: Argo CD bootstrap package initialization
# ABOUTME: Exposes version information

"""
argocd-bootstrap - Stand up a local GitOps demo stack with Argo CD.

=============================================================================
WHAT DOES IT DO?
=============================================================================

One command, no flags, five stages, each a precondition for the next:

1. PREFLIGHT: Python version and required tools (helm, kubectl, minikube, docker)
2. CLUSTER: start minikube, wait for Ready nodes, taint the control plane
3. CONTROLLER: install the pinned Argo CD chart, wait for it and its admin secret
4. APPLICATIONS: apply the project and the root "app of apps", apply every
   Application file, then force a sync of every live Application
5. DASHBOARDS: pack Grafana dashboards into one ConfigMap and apply it

Automatic sync is disabled in the Application manifests: nothing reaches the
cluster until this tool asks Argo CD to sync it.

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

argocd_bootstrap/
├── __init__.py          <- YOU ARE HERE: Package entry point
├── cli.py               <- main(): exit status, failure reporting
├── config.py            <- Configuration management (env vars, settings)
├── context.py           <- Immutable per-run session context
├── errors.py            <- Exception taxonomy
├── orchestrator.py      <- Stage order and fail-fast sequencing
├── stages.py            <- The five stages
└── utils/
    ├── charts.py        <- Helm repository index lookup
    ├── client.py        <- kubectl / helm / minikube wrappers
    ├── dashboards.py    <- Dashboards ConfigMap generation
    ├── discovery.py     <- Application file discovery
    ├── logging.py       <- Structured logging and the session log file
    ├── preflight.py     <- Runtime and tool checks
    ├── readiness.py     <- Bounded readiness polling
    └── runner.py        <- Subprocess execution
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
