# ABOUTME: Structured logging with a per-session log file for the bootstrap orchestrator
# ABOUTME: Implements session ids, the session log processor and secret masking

"""
Structured logging with session ids and a per-session log file.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Every bootstrap run is a SESSION. A session:

1. Gets an ID derived from its start time, e.g. ``20261018143005CEST``.
2. Writes an append-only log file ``sc-<session id>.log``.
3. Echoes human-readable status lines to the console.

The log file receives MORE than the console: besides every status event it
records the full output of every external command (minikube, helm, kubectl),
so a failed run can be investigated after the console has scrolled away.

=============================================================================
TWO WRITERS, ONE PIPELINE
=============================================================================

Status events flow through structlog:

    logger.info("Installing Argo CD chart", version="9.1.0")
        -> merge_contextvars
        -> add_log_level
        -> TimeStamper
        -> SessionLog (appends a JSON line to the session file)
        -> ConsoleRenderer / JSONRenderer (console)

Command output bypasses the console entirely and goes straight to the file
through SessionLog.record_command(), called by the command runner.

=============================================================================
FILE FORMAT
=============================================================================

One JSON object per line:

    {"session_id": "...", "kind": "event", "timestamp": "...",
     "level": "info", "event": "Starting preflight checks", "stage": "..."}
    {"session_id": "...", "kind": "command", "timestamp": "...",
     "argv": ["helm", "repo", "add", ...], "returncode": 0,
     "stdout": "...", "stderr": ""}
"""

# =============================================================================
# IMPORTS
# =============================================================================

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping, Sequence
    from pathlib import Path


# =============================================================================
# SECRET MASKING
# =============================================================================

MASK = "***MASKED***"

# Patterns for secrets embedded in free text (command output, error messages).
SECRET_PATTERNS = [
    (re.compile(r"(token[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), rf"\1{MASK}"),
    (re.compile(r"(password[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), rf"\1{MASK}"),
    (re.compile(r"(bearer\s+)[^\s\"']+", re.I), rf"\1{MASK}"),
]

# Keys whose values are masked wherever they appear in structured data.
SENSITIVE_KEYS = frozenset(["token", "password", "secret_value", "authorization"])


def mask_secrets(data: Any) -> Any:
    """
    Mask sensitive values in strings, dicts and lists.

    Recurses through nested structures:

        {"config": {"password": "hunter2"}}  ->  {"config": {"password": "***MASKED***"}}
        "password=hunter2 ok"                ->  "password=***MASKED*** ok"
    """
    if isinstance(data, str):
        for pattern, replacement in SECRET_PATTERNS:
            data = pattern.sub(replacement, data)
        return data

    if isinstance(data, dict):
        return {
            k: MASK if str(k).lower() in SENSITIVE_KEYS else mask_secrets(v)
            for k, v in data.items()
        }

    if isinstance(data, (list, tuple)):
        return [mask_secrets(item) for item in data]

    return data


# =============================================================================
# SESSION IDENTIFIER
# =============================================================================


def new_session_id(now: datetime | None = None) -> str:
    """
    Build a session id from the local start time.

    Format is ``%Y%m%d%H%M%S%Z``: sortable, readable, and safe to use in a
    file name. The zone abbreviation keeps ids from different hosts apart.

    Args:
        now: Start time. Defaults to the current local time.

    Example:
        >>> new_session_id(datetime(2026, 10, 18, 14, 30, 5, tzinfo=UTC))
        '20261018143005UTC'
    """
    moment = now or datetime.now().astimezone()
    return moment.strftime("%Y%m%d%H%M%S%Z")


def session_log_path(log_dir: Path, session_id: str) -> Path:
    """Return the log file path for a session: ``<log_dir>/sc-<id>.log``."""
    return log_dir / f"sc-{session_id}.log"


# =============================================================================
# SESSION LOG
# =============================================================================


class SessionLog:
    """
    Append-only JSON-lines log for one bootstrap session.

    An instance is both:

    - a STRUCTLOG PROCESSOR: pass it in the processor list and every status
      event is appended to the file before being rendered on the console;
    - a COMMAND RECORDER: the command runner calls record_command() with the
      full output of each external command.

    The file is opened in append mode for each write, so nothing is lost if
    the process is interrupted between stages.
    """

    def __init__(self, path: Path, session_id: str, mask: bool = True) -> None:
        """
        Initialize session log.

        Args:
            path: Log file path. Parent directory is created if missing.
            session_id: Identifier written into every entry.
            mask: Whether to mask secrets before writing.
        """
        self._path = path
        self._session_id = session_id
        self._mask = mask
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def session_id(self) -> str:
        return self._session_id

    def write(self, kind: str, fields: MutableMapping[str, Any]) -> None:
        """Append one entry of the given kind."""
        entry: dict[str, Any] = {"session_id": self._session_id, "kind": kind}
        entry.update(fields)
        if self._mask:
            entry = mask_secrets(entry)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def record_command(
        self,
        argv: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
        sensitive: bool = False,
    ) -> None:
        """
        Record the full result of an external command.

        Args:
            argv: Command line as executed.
            returncode: Exit status.
            stdout: Captured standard output.
            stderr: Captured standard error.
            sensitive: Replace stdout with a mask (e.g. when reading a secret).
        """
        self.write(
            "command",
            {
                "timestamp": datetime.now().astimezone().isoformat(),
                "argv": list(argv),
                "returncode": returncode,
                "stdout": MASK if sensitive and stdout else stdout,
                "stderr": stderr,
            },
        )

    def __call__(
        self,
        logger: structlog.types.WrappedLogger,  # noqa: ARG002 - Required by structlog Processor API
        method_name: str,  # noqa: ARG002 - Required by structlog Processor API
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        """Append the event to the session file and pass it on unchanged."""
        self.write("event", dict(event_dict))
        return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    session_log: SessionLog | None = None,
) -> None:
    """
    Configure structured logging.

    Call once at startup, after the session log exists.

    Args:
        level: Console level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_output: Render console lines as JSON instead of coloured text.
        session_log: When given, every event is also appended to this file.

    Example:
        log = SessionLog(session_log_path(Path("."), sid), sid)
        configure_logging(level="DEBUG", session_log=log)
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        # Local time with offset, e.g. 2026-10-18T14:30:05+0200
        structlog.processors.TimeStamper(fmt="%Y-%m-%dT%H:%M:%S%z", utc=False),
    ]

    if session_log is not None:
        processors.append(session_log)

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # Module-level loggers must pick up the session log configured above.
        cache_logger_on_first_use=False,
    )
