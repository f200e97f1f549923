"""
Structured logging configuration using structlog.

Provides consistent, structured logging across the coach with:
- JSON output in production
- Pretty console output in development
- Context binding for entry/session tracing
- File output to the logs directory (one file per process run)
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.typing import Processor

from story_coach.core.config import settings

LOG_FILE_PREFIX = "story_coach_"


def _cull_old_logs(logs_dir: Path, keep: int) -> None:
    """Delete old log files, keeping only the N most recent.

    Args:
        logs_dir: Directory containing log files
        keep: Number of recent log files to retain
    """
    log_files = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    for old_file in log_files[max(keep, 0):]:
        try:
            os.remove(old_file)
        except OSError:
            pass  # Another process may hold or have removed it


def configure_logging(
    log_sessions_to_keep: int = 5,
    logs_dir: Optional[Path] = None,
    write_file: bool = True,
) -> None:
    """Configure structlog for the application.

    Call this once at startup, before any logging.

    Args:
        log_sessions_to_keep: Number of recent log files to retain
        logs_dir: Override for settings.logs_dir
        write_file: Also write a timestamped log file

    Outputs:
        - Console (colored in debug, JSON otherwise)
        - File: <logs_dir>/story_coach_YYYYMMDD_HHMMSS.log
    """
    shared_processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    if settings.debug:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    # Clear existing handlers so reconfiguration (tests, long-running workers)
    # does not duplicate output
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    root_logger.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if write_file:
        target_dir = Path(logs_dir or settings.logs_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        # keep-1 makes room for the file created below
        _cull_old_logs(target_dir, keep=log_sessions_to_keep - 1)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_handler = logging.FileHandler(
            target_dir / f"{LOG_FILE_PREFIX}{timestamp}.log", mode="w"
        )
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from story_coach.core.logging import get_logger

        log = get_logger(__name__)
        log.info("story_generated", framework="SOAR")
    """
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """
    Bind context variables included in all subsequent logs.

        bind_context(entry_id=entry.id, session_id=session.id)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables from the logging context."""
    structlog.contextvars.clear_contextvars()
