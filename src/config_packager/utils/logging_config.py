"""Logging configuration for config-packager.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Performance timing decorators for long operations

Environment Variables:
    CONFIG_PACKAGER_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: WARNING)
    CONFIG_PACKAGER_LOG_FILE: Path to log file (default: ~/.config-packager/packager.log)
    CONFIG_PACKAGER_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    CONFIG_PACKAGER_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from config_packager.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("export")
    def export(self, ...):
        ...

    # Or use context manager for sections:
    with timed_section("archive", target="mysite"):
        ...
"""
import functools
import logging
import os
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("config_packager.perf")


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("CONFIG_PACKAGER_LOG_LEVEL", "WARNING").upper()
    return getattr(logging, level_str, logging.WARNING)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".config-packager" / "packager.log"
    return Path(os.environ.get("CONFIG_PACKAGER_LOG_FILE", str(default_path)))


def setup_logging(level: Optional[int] = None) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (WARNING+ by default, respects CONFIG_PACKAGER_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance log file for timing metrics

    Args:
        level: Console level overriding the environment
    """
    log_level = level if level is not None else get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("CONFIG_PACKAGER_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("CONFIG_PACKAGER_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-36s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    perf_log_file = log_file.parent / "packager-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    # Replace handlers from a previous call
    root_logger = logging.getLogger("config_packager")
    for handler in root_logger.handlers + perf_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
    perf_logger.handlers.clear()

    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    perf_logger.setLevel(logging.DEBUG)
    perf_logger.addHandler(perf_handler)
    perf_logger.propagate = False

    root_logger.debug(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")


def _perf_line(operation: str, target: Optional[str], elapsed: float, outcome: str) -> str:
    return f"{operation:20s} | {target or 'N/A':24s} | {elapsed:8.2f}ms | {outcome}"


def timed(operation: str, target: Optional[str] = None):
    """Decorator to log execution time of a function.

    Args:
        operation: Name of the operation (e.g., "export", "detect")
        target: Optional subject of the operation (bundle, package)

    Usage:
        @timed("export")
        def export(self, names):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(_perf_line(operation, target, elapsed, f"FAIL: {e}"))
                raise
            elapsed = (time.perf_counter() - start) * 1000
            perf_logger.info(_perf_line(operation, target, elapsed, "OK"))
            return result

        return wrapper

    return decorator


@contextmanager
def timed_section(operation: str, target: Optional[str] = None, **extra):
    """Context manager for timing code sections.

    Usage:
        with timed_section("archive", target="mysite", packages=3):
            ...
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = _perf_line(operation, target, elapsed, f"FAIL: {e}")
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise

    elapsed = (time.perf_counter() - start) * 1000
    msg = _perf_line(operation, target, elapsed, "OK")
    if extra_str:
        msg += f" | {extra_str}"
    perf_logger.info(msg)
