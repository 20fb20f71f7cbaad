# ABOUTME: Unit tests for bounded readiness polling
# ABOUTME: Tests attempt counting, deadlines and the ReadinessTimeout error

import pytest

from argocd_bootstrap.errors import ReadinessTimeout
from argocd_bootstrap.utils.readiness import max_attempts, wait_until


def probe_sequence(*answers):
    """Probe returning answers in turn, repeating the last one."""
    remaining = list(answers)

    def check():
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return check


@pytest.mark.unit
class TestMaxAttempts:
    """Tests for max_attempts."""

    @pytest.mark.parametrize(
        ("timeout", "interval", "expected"),
        [(300, 5, 61), (10, 3, 5), (1, 5, 2)],
    )
    def test_values(self, timeout, interval, expected):
        """Test the first probe plus one per interval."""
        assert max_attempts(timeout, interval) == expected


@pytest.mark.unit
class TestWaitUntil:
    """Tests for wait_until."""

    def test_ready_immediately(self):
        """Test no sleep when the first probe passes."""
        sleeps = []

        probes = wait_until(lambda: True, description="x", timeout=10, interval=1, sleep=sleeps.append)

        assert probes == 1
        assert sleeps == []

    def test_ready_after_polling(self):
        """Test polling sleeps the interval between probes."""
        sleeps = []

        probes = wait_until(
            probe_sequence(False, False, True),
            description="x",
            timeout=10,
            interval=2,
            sleep=sleeps.append,
        )

        assert probes == 3
        assert sleeps == [2, 2]

    def test_timeout(self):
        """Test a condition that never holds raises after the last attempt."""
        sleeps = []

        with pytest.raises(ReadinessTimeout) as exc_info:
            wait_until(
                lambda: False,
                description="namespace grafana",
                timeout=3,
                interval=1,
                sleep=sleeps.append,
            )

        error = exc_info.value
        assert error.attempts == 4
        assert error.description == "namespace grafana"
        assert "Timed out after 3s (4 attempts) waiting for namespace grafana" == str(error)
        assert len(sleeps) == 3

    def test_truthy_values_count_as_ready(self):
        """Test any truthy probe result ends the wait."""
        assert wait_until(lambda: 2, description="x", timeout=1, interval=1, sleep=lambda s: None) == 1

    def test_probe_exception_propagates(self):
        """Test probe errors are not swallowed."""

        def broken():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            wait_until(broken, description="x", timeout=1, interval=1, sleep=lambda s: None)
