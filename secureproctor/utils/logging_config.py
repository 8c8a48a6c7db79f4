"""
Logging setup for the SecureProctor service

Console output always; rotating files (all records plus errors only)
when LOG_TO_FILE is set.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Request lines are already logged by the app middleware
QUIET_LOGGERS = ("uvicorn.access",)


def _rotating_handler(path: Path, level: int, max_mb: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8"
    )
    handler.setLevel(level)
    return handler


def setup_logging(
    service_name: str = "secureproctor",
    level: str = "INFO",
    log_to_file: bool = False,
    log_dir: Optional[Union[str, Path]] = None
) -> List[Path]:
    """
    Configure the root logger for the service.

    Args:
        service_name: Prefix for log file names
        level: Root log level name
        log_to_file: Also write rotating log files
        log_dir: Directory for log files (./logs by default)

    Returns:
        Paths of the log files being written
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    files: List[Path] = []

    if log_to_file:
        directory = Path(log_dir or "logs")
        directory.mkdir(parents=True, exist_ok=True)
        files = [directory / f"{service_name}.log", directory / f"{service_name}_errors.log"]
        handlers.append(_rotating_handler(files[0], logging.DEBUG, max_mb=10, backups=5))
        handlers.append(_rotating_handler(files[1], logging.ERROR, max_mb=5, backups=3))

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.info(f"Logging configured: level={level.upper()} files={[str(f) for f in files]}")
    return files
