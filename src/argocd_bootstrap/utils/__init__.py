# ABOUTME: Utilities package initialization for the Argo CD bootstrap orchestrator
# ABOUTME: Contains shared helpers for commands, tool clients, readiness and logging

"""
Argo CD Bootstrap Utilities Package

Shared utilities:
    - runner.py: subprocess execution with exit-status checks
    - client.py: kubectl, helm and minikube wrappers
    - charts.py: Helm repository index lookup
    - readiness.py: bounded readiness polling
    - preflight.py: runtime and tool availability checks
    - discovery.py: Application definition discovery
    - dashboards.py: dashboards ConfigMap generation
    - logging.py: structured logging with a per-session log file
"""
