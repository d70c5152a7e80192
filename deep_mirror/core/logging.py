"""
Structured logging configuration using structlog.

Console output is pretty-printed in debug mode and JSON otherwise. Each
process run also writes to its own timestamped file under logs/, and only
the most recent files are kept.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.typing import Processor

from deep_mirror.core.config import settings

LOG_FILE_PREFIX = "deep_mirror_"


def _cull_old_logs(logs_dir: Path, keep: int) -> None:
    """Delete old run logs, keeping only the `keep` most recent."""
    log_files = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    for old_file in log_files[max(keep, 0):]:
        try:
            old_file.unlink()
        except OSError:
            pass  # file in use or already gone


def configure_logging(
    log_runs_to_keep: int = 5,
    logs_dir: Optional[Path] = None,
    level: int = logging.INFO,
) -> None:
    """Configure structlog for the application.

    Call this once at application startup, before any logging.

    Args:
        log_runs_to_keep: Number of run log files to retain (default: 5)
        logs_dir: Directory for log files (default: ./logs)
        level: Minimum level emitted
    """
    logs_dir = logs_dir or Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    # keep-1 to make room for this run's file
    _cull_old_logs(logs_dir, keep=log_runs_to_keep - 1)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"{LOG_FILE_PREFIX}{timestamp}.log"

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

    # Reconfiguration (tests, reloads) must not stack handlers
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(file_handler)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from deep_mirror.core.logging import get_logger

        log = get_logger(__name__)
        log.info("snapshot_saved", stage=2)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """Bind context variables included in all subsequent logs (e.g. request_id)."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
