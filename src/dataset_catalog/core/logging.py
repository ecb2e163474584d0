"""Loguru logging configuration for the catalog CLI and services.

Records go to stderr as text, or as one JSON object per line when
``json_logs`` is set so an archival or ingestion pipeline can parse them.
An optional rotating file sink keeps a local record of catalog writes.
"""

import sys
from pathlib import Path

from loguru import logger

LOG_FILE_NAME = "dataset-catalog.log"

_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} | {message}"


def setup_logging(
    log_level: str = "INFO",
    log_dir: str | None = None,
    *,
    json_logs: bool = False,
    rotation: str = "24h",
    retention: str = "7 days",
) -> None:
    """Configure Loguru sinks, replacing any configured earlier.

    Args:
        log_level: Minimum log level to emit (case-insensitive).
        log_dir: Optional directory for ``dataset-catalog.log``.
        json_logs: Serialize records as JSON lines instead of text.
        rotation: Loguru rotation condition for the file sink.
        retention: Loguru retention policy for rotated files.
    """
    level = log_level.upper()
    logger.remove()
    if json_logs:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=_LOG_FORMAT)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path / LOG_FILE_NAME,
            level=level,
            format=_LOG_FORMAT,
            serialize=json_logs,
            rotation=rotation,
            retention=retention,
        )
