# ABOUTME: Ordered, fail-fast sequencing of the bootstrap stages
# ABOUTME: Runs each stage in turn and stops at the first failure with an explicit result

"""Stage sequencing.

The run is a fixed list of stages. Each one is a precondition for the
next, so the orchestrator stops at the first stage that fails and reports
its name. Results are explicit values rather than process exits; the CLI
decides what a failure means for the process.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

import structlog

from argocd_bootstrap import stages
from argocd_bootstrap.errors import BootstrapError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from argocd_bootstrap.context import SessionContext

logger = structlog.get_logger(__name__)


class Stage(NamedTuple):
    """A named step of the run."""

    name: str
    run: Callable[[SessionContext], None]


STAGES: tuple[Stage, ...] = (
    Stage("preflight_checks", stages.preflight_checks),
    Stage("start_cluster", stages.start_cluster),
    Stage("install_controller", stages.install_controller),
    Stage("register_applications", stages.register_applications),
    Stage("provision_dashboards", stages.provision_dashboards),
)


@dataclass
class StageResult:
    """Outcome of one stage."""

    stage: str
    ok: bool
    message: str = ""
    error: BootstrapError | None = None

    def format_message(self) -> str:
        """Format outcome for the console and session log."""
        if self.ok:
            return f"{self.stage}: done"
        return f"{self.stage}: {self.message}"


class Orchestrator:
    """Runs stages in order, stopping at the first failure."""

    def __init__(self, ctx: SessionContext, stage_list: Sequence[Stage] = STAGES) -> None:
        """Initialize orchestrator.

        Args:
            ctx: Session context handed to every stage.
            stage_list: Stages to run, in order.
        """
        self._ctx = ctx
        self._stages = tuple(stage_list)

    def run_stage(self, stage: Stage) -> StageResult:
        """Run one stage and convert its outcome into a StageResult."""
        try:
            stage.run(self._ctx)
        except BootstrapError as e:
            logger.debug("Stage failed", stage=stage.name, error_type=type(e).__name__)
            return StageResult(stage=stage.name, ok=False, message=str(e), error=e)
        return StageResult(stage=stage.name, ok=True)

    def run(self) -> list[StageResult]:
        """Run all stages.

        Returns:
            Results of the stages that ran. The last one is the failure, if any.
        """
        results: list[StageResult] = []
        for stage in self._stages:
            result = self.run_stage(stage)
            results.append(result)
            if not result.ok:
                break
            logger.debug("Stage completed", stage=stage.name)
        return results


def first_failure(results: Sequence[StageResult]) -> StageResult | None:
    """Return the failed result, if the run failed."""
    return next((r for r in results if not r.ok), None)
