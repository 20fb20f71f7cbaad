# ABOUTME: Command-line entry point for the Argo CD bootstrap orchestrator
# ABOUTME: Builds the session, runs all stages and maps the outcome to an exit status

"""argocd-bootstrap - stand up a local Argo CD GitOps demo stack."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any, NoReturn

import structlog
from pydantic import ValidationError

from argocd_bootstrap.config import load_settings
from argocd_bootstrap.context import SessionContext, create_context
from argocd_bootstrap.orchestrator import Orchestrator, first_failure
from argocd_bootstrap.utils.logging import configure_logging

if TYPE_CHECKING:
    from argocd_bootstrap.orchestrator import StageResult

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def error_logger() -> Any:
    """Logger with the configured processors that prints to stderr instead of stdout."""
    return structlog.wrap_logger(structlog.PrintLogger(sys.stderr))


def fail(ctx: SessionContext, result: StageResult) -> NoReturn:
    """Report a failed stage on stderr and in the session log, then exit 1."""
    error_logger().error(
        result.message,
        stage=result.stage,
        error_type=type(result.error).__name__ if result.error else None,
        session_id=ctx.session_id,
        log_file=str(ctx.log_path),
    )
    sys.exit(EXIT_FAILURE)


def run(ctx: SessionContext) -> int:
    """Run every stage against an existing context and return the exit status."""
    logger.info("Starting", session_id=ctx.session_id, log_file=str(ctx.log_path))

    results = Orchestrator(ctx).run()
    failure = first_failure(results)
    if failure:
        fail(ctx, failure)

    logger.info("Done", session_id=ctx.session_id, log_file=str(ctx.log_path))
    return EXIT_OK


def main() -> None:
    """Run the bootstrap. Takes no arguments; configure through the environment."""
    try:
        settings = load_settings()
    except ValidationError as e:
        configure_logging(level="INFO")
        error_logger().error("Invalid configuration", error=str(e))
        sys.exit(EXIT_FAILURE)

    ctx = create_context(settings)
    configure_logging(
        level=settings.log_level,
        json_output=settings.json_output,
        session_log=ctx.session_log,
    )

    try:
        sys.exit(run(ctx))
    except KeyboardInterrupt:
        logger.warning("Interrupted, cluster left in its current state", session_id=ctx.session_id)
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    main()
