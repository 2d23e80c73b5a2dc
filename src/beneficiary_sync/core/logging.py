"""Loguru logging configuration for the sync engine.

Every console and file line carries the ID of the sync job that emitted it
(``-`` outside a job).  Lines bound with ``json_output=True`` are also
written as JSON records, and a rotating log file is added when ``log_dir``
is set.
"""

import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | job={extra[job_id]} | {name}:{function}:{line} | {message}"
)
_NO_JOB = "-"


def _json_requested(record: dict) -> bool:
    return bool(record["extra"].get("json_output", False))


def setup_logging(log_level: str = "INFO", log_dir: str | None = None) -> None:
    """Replace Loguru's default sink with the sync engine's sinks.

    Args:
        log_level: Minimum log level to emit (case-insensitive).
        log_dir: Optional directory for ``beneficiary-sync.log``, rotated
            every 24 hours and kept for 7 days.
    """
    level = log_level.upper()
    logger.remove()
    logger.configure(extra={"job_id": _NO_JOB})
    logger.add(sys.stderr, level=level, format=_LOG_FORMAT)
    logger.add(sys.stderr, level=level, serialize=True, filter=_json_requested)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path / "beneficiary-sync.log",
            level=level,
            format=_LOG_FORMAT,
            rotation="24h",
            retention="7 days",
        )


@contextmanager
def job_context(job_id: uuid.UUID | str) -> Iterator[None]:
    """Tag every line logged inside the block, including from awaited calls, with ``job_id``."""
    with logger.contextualize(job_id=str(job_id)):
        yield
