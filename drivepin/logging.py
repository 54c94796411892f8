from __future__ import annotations

import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

DEFAULT_LOG_DIR = Path(
    os.environ.get(
        "DRIVEPIN_LOG_DIR",
        Path.home() / ".local" / "state" / "drivepin" / "logs",
    )
)


def _should_log_command_output(record) -> bool:
    """Filter raw PowerShell stdout/stderr - only show in TRACE mode."""
    tags = record["extra"].get("tags", [])
    if "command-output" in tags:
        return record["level"].no <= logger.level("TRACE").no
    return True


def setup_logging(
    *,
    verbose: bool = False,
    debug: bool = False,
    log_dir: Path | None = None,
) -> Logger:
    """
    Setup logging sinks for the command line tool.

    Logging Tiers:
    - ERROR: Fatal pre-flight failures and failed mutations
    - WARNING: Unmatched mapping entries, declined actions
    - INFO: Run start/finish, summaries
    - DEBUG: Per-entry resolution steps (--verbose)
    - TRACE: Every PowerShell command and its raw output (--debug)

    Log Files:
    - operations.log: INFO+ events (30 day retention)
    - structured.jsonl: Structured JSON logs for analysis (30 day retention)

    Args:
        verbose: Enable DEBUG level console output
        debug: Enable TRACE level console output (very verbose)
        log_dir: Custom log directory (defaults to ~/.local/state/drivepin/logs)
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})

    if debug:
        console_level = "TRACE"
    elif verbose:
        console_level = "DEBUG"
    else:
        console_level = "INFO"

    # SINK 1: Console (stderr) - operator facing
    logger.add(
        sys.stderr,
        level=console_level,
        backtrace=False,
        diagnose=False,
        filter=_should_log_command_output,
        colorize=True,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[source]: <8}</cyan> | "
            "{message}"
        ),
    )

    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    # SINK 2: Operations Log - audit trail of letter changes (INFO+)
    logger.add(
        log_dir / "operations.log",
        level="INFO",
        rotation="5 MB",
        retention="30 days",
        compression="zip",
        backtrace=False,
        diagnose=False,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{extra[source]: <8} | "
            "{extra[job_id]: <16} | "
            "{message}"
        ),
    )

    # SINK 3: Structured JSON Log - For analysis tools (INFO+)
    logger.add(
        log_dir / "structured.jsonl",
        level="INFO",
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        serialize=True,
        format="{message}",
    )

    return logger


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking operations
        tags: Tags for filtering (e.g., ["restore"])
        source: Source component (e.g., "export", "restore", "backend")

    Returns:
        Logger with bound context
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for tracking operations with automatic timing.

    Logs operation start, completion, and failure with duration tracking.

    Args:
        operation: Operation name (e.g., "export", "restore")
        **details: Operation-specific details to log

    Yields:
        Logger bound with job_id and operation context

    Example:
        with operation_context("restore", dry_run=True) as log:
            log.debug("Processing entry E:")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.info(f"{operation.capitalize()} started", **details)

        try:
            yield log
            duration = time.time() - start_time
            log.success(
                f"{operation.capitalize()} completed", duration_seconds=round(duration, 2)
            )
        except Exception as e:
            duration = time.time() - start_time
            log.error(
                f"{operation.capitalize()} failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(duration, 2),
            )
            raise


class LoggerFactory:
    """
    Factory for creating domain-specific loggers with automatic context.
    """

    @staticmethod
    def for_export() -> Logger:
        """Logger for mapping export."""
        return get_logger(
            job_id=f"export-{uuid.uuid4().hex[:8]}", source="export", tags=["export"]
        )

    @staticmethod
    def for_restore() -> Logger:
        """Logger for mapping restore runs."""
        return get_logger(
            job_id=f"restore-{uuid.uuid4().hex[:8]}",
            source="restore",
            tags=["restore", "volumes"],
        )

    @staticmethod
    def for_backend() -> Logger:
        """Logger for PowerShell volume commands."""
        return get_logger(source="backend", tags=["backend", "powershell"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for system operations (startup, privilege checks, config)."""
        return get_logger(source="system", tags=["system"])
