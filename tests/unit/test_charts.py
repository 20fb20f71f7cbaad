# ABOUTME: Unit tests for the Helm repository index lookup
# ABOUTME: Uses respx to mock index.yaml responses, timeouts and error statuses

import httpx
import pytest
import respx
from tenacity import wait_none

from argocd_bootstrap.errors import ChartVersionError
from argocd_bootstrap.utils.charts import chart_versions, fetch_index, verify_chart_version

REPO_URL = "https://charts.example.com"
INDEX_URL = f"{REPO_URL}/index.yaml"

INDEX = """\
apiVersion: v1
entries:
  argo-cd:
    - version: 9.1.0
      appVersion: v3.2.0
    - version: 9.0.6
  argo-workflows:
    - version: 0.45.0
"""


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    """Retry timeouts without sleeping."""
    monkeypatch.setattr(fetch_index.retry, "wait", wait_none())


@pytest.mark.unit
class TestChartVersions:
    """Tests for index parsing."""

    def test_versions_of_chart(self):
        """Test versions are collected for one chart only."""
        index = {"entries": {"argo-cd": [{"version": "9.1.0"}, {"version": "9.0.6"}]}}
        assert chart_versions(index, "argo-cd") == {"9.1.0", "9.0.6"}

    def test_unknown_chart(self):
        """Test an unknown chart has no versions."""
        assert chart_versions({"entries": {}}, "argo-cd") == set()
        assert chart_versions({}, "argo-cd") == set()


@pytest.mark.unit
class TestVerifyChartVersion:
    """Tests for verify_chart_version using respx."""

    @respx.mock
    def test_published_version(self):
        """Test a published version passes."""
        respx.get(INDEX_URL).mock(return_value=httpx.Response(200, text=INDEX))

        verify_chart_version(REPO_URL, "argo-cd", "9.1.0")

    @respx.mock
    def test_unpublished_version(self):
        """Test an unknown version raises."""
        respx.get(INDEX_URL).mock(return_value=httpx.Response(200, text=INDEX))

        with pytest.raises(ChartVersionError, match="9.9.9 is not published"):
            verify_chart_version(REPO_URL, "argo-cd", "9.9.9")

    @respx.mock
    def test_http_error_status(self):
        """Test an error status raises."""
        respx.get(INDEX_URL).mock(return_value=httpx.Response(404))

        with pytest.raises(ChartVersionError, match="HTTP 404"):
            verify_chart_version(REPO_URL, "argo-cd", "9.1.0")

    @respx.mock
    def test_invalid_yaml(self):
        """Test an unparsable index raises."""
        respx.get(INDEX_URL).mock(return_value=httpx.Response(200, text="entries: [unclosed"))

        with pytest.raises(ChartVersionError, match="not valid YAML"):
            verify_chart_version(REPO_URL, "argo-cd", "9.1.0")

    @respx.mock
    def test_timeout_retried_then_fails(self):
        """Test timeouts are retried three times before failing."""
        route = respx.get(INDEX_URL).mock(side_effect=httpx.ConnectTimeout("slow"))

        with pytest.raises(ChartVersionError, match="Cannot fetch"):
            verify_chart_version(REPO_URL, "argo-cd", "9.1.0")

        assert route.call_count == 3

    @respx.mock
    def test_timeout_then_success(self):
        """Test a transient timeout is recovered from."""
        route = respx.get(INDEX_URL).mock(
            side_effect=[httpx.ReadTimeout("slow"), httpx.Response(200, text=INDEX)]
        )

        verify_chart_version(REPO_URL, "argo-cd", "9.0.6")

        assert route.call_count == 2

    @respx.mock
    def test_connection_error_not_retried(self):
        """Test non-timeout transport errors fail immediately."""
        route = respx.get(INDEX_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ChartVersionError):
            verify_chart_version(REPO_URL, "argo-cd", "9.1.0")

        assert route.call_count == 1
