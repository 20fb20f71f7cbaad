# ABOUTME: Helm repository index lookup for the pinned Argo CD chart version
# ABOUTME: Fetches index.yaml over HTTP with retry on timeouts

"""Helm chart repository index lookup.

A Helm repository is a static site whose ``index.yaml`` lists every chart and
version it publishes:

    entries:
      argo-cd:
        - version: 9.1.0
          appVersion: v3.2.0
        - version: 9.0.6
          ...

Checking this index before touching the cluster turns a mistyped or
withdrawn chart version into an immediate, readable error.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
import yaml
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from argocd_bootstrap.errors import ChartVersionError

logger = structlog.get_logger(__name__)


@retry(
    retry=retry_if_exception_type(httpx.TimeoutException),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)
def fetch_index(repo_url: str, timeout: float = 30.0) -> dict[str, Any]:
    """
    Download and parse a repository's ``index.yaml``.

    Timeouts are retried up to three attempts with exponential backoff;
    any other failure propagates immediately.

    Raises:
        ChartVersionError: On an HTTP error status or an unparsable index.
        httpx.TimeoutException: If every attempt timed out.
    """
    url = f"{repo_url.rstrip('/')}/index.yaml"
    log = logger.bind(url=url)
    log.debug("Fetching chart repository index")

    response = httpx.get(url, timeout=timeout, follow_redirects=True)
    if response.status_code >= 400:
        log.warning("Chart repository error", status=response.status_code)
        raise ChartVersionError(
            f"Chart repository index {url} returned HTTP {response.status_code}"
        )

    try:
        index = yaml.safe_load(response.text)
    except yaml.YAMLError as e:
        raise ChartVersionError(f"Chart repository index {url} is not valid YAML: {e}") from e

    return index if isinstance(index, dict) else {}


def chart_versions(index: dict[str, Any], chart: str) -> set[str]:
    """Versions of one chart listed in a parsed index."""
    entries = (index.get("entries") or {}).get(chart) or []
    return {str(entry.get("version")) for entry in entries if entry.get("version")}


def verify_chart_version(repo_url: str, chart: str, version: str, timeout: float = 30.0) -> None:
    """
    Ensure the repository publishes chart at exactly version.

    Raises:
        ChartVersionError: If the version is missing or the index is unreachable.
    """
    try:
        index = fetch_index(repo_url, timeout=timeout)
    except httpx.HTTPError as e:
        raise ChartVersionError(f"Cannot fetch chart repository index from {repo_url}: {e}") from e

    versions = chart_versions(index, chart)
    if version not in versions:
        raise ChartVersionError(
            f"Chart {chart} version {version} is not published by {repo_url}"
            f" ({len(versions)} versions available)"
        )
    logger.debug("Chart version found", chart=chart, version=version)
