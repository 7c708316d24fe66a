"""Logging for topobox.

Two outputs share one call:
- the rich console, for what the user watches during `topobox up`
- a rotating log file, which keeps everything including debug lines

Messages about one machine go through a logger bound to that machine. The
console line is prefixed with the machine name and the file record carries it
in its own column, so output from a parallel render stays attributable.

Usage:
    from topobox.utils.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Loaded topology")
    logger.for_machine("web01").error("Provisioning failed", exc=error)

Environment Variables:
    TOPOBOX_DEBUG=1          Show debug lines on the console
    TOPOBOX_LOG_LEVEL=DEBUG  Level for the topobox logger tree
    TOPOBOX_LOG_FILE=/path   Write the log file here instead
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape

_configured = False
_debug_mode = False
_log_file: Optional[Path] = None

console = Console()

SUCCESS_LEVEL = 25
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(machine)-12s | %(name)s | %(message)s"


class MachineFieldFilter(logging.Filter):
    """Give every record a `machine` attribute so FILE_FORMAT always resolves."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "machine"):
            record.machine = "-"
        return True


def _get_log_dir() -> Path:
    env_log_file = os.environ.get("TOPOBOX_LOG_FILE")
    if env_log_file:
        return Path(env_log_file).parent

    # Inside a project that already has .topobox/, keep logs next to the Vagrant state
    project = Path(os.environ.get("TOPOBOX_PROJECT_DIR", Path.cwd()))
    if (project / ".topobox").is_dir():
        log_dir = project / ".topobox" / "logs"
    else:
        log_dir = Path.home() / ".cache" / "topobox" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _get_log_file() -> Path:
    global _log_file
    if _log_file:
        return _log_file

    env_log_file = os.environ.get("TOPOBOX_LOG_FILE")
    _log_file = Path(env_log_file) if env_log_file else _get_log_dir() / "topobox.log"
    return _log_file


def is_debug_mode() -> bool:
    return _debug_mode or os.environ.get("TOPOBOX_DEBUG", "").lower() in ("1", "true", "yes")


def configure_logging(
    debug: bool = False,
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    force: bool = False,
) -> None:
    """Set up the `topobox` logger tree.

    Runs implicitly on the first get_logger() call. The CLI calls it again
    with force=True when --debug is given, since module-level loggers were
    created before the option was parsed.

    Args:
        debug: Show debug lines on the console and lower the level to DEBUG
        log_level: Explicit level name, overriding TOPOBOX_LOG_LEVEL
        log_file: Explicit log file, overriding TOPOBOX_LOG_FILE
        force: Reconfigure even if already configured
    """
    global _configured, _debug_mode, _log_file

    if _configured and not force:
        return

    _debug_mode = debug or is_debug_mode()
    if log_file:
        _log_file = log_file

    level_name = (log_level or os.environ.get("TOPOBOX_LOG_LEVEL") or ("DEBUG" if _debug_mode else "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    tree = logging.getLogger("topobox")
    tree.setLevel(level)
    tree.handlers.clear()

    try:
        file_handler = RotatingFileHandler(
            _get_log_file(),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
    except OSError:
        file_handler = None

    if file_handler is not None:
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(MachineFieldFilter())
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        tree.addHandler(file_handler)

    _configured = True
    tree.debug(f"Logging configured: level={level_name}, debug={_debug_mode}, file={_log_file}")


class topoboxLogger:
    """Log to the topobox logger tree and echo to the rich console.

    Console echo is on by default for info and above; debug lines only reach
    the console in debug mode. A logger bound to a machine (see for_machine)
    prefixes console lines with the machine name.
    """

    def __init__(self, name: str, machine: Optional[str] = None):
        self.name = name
        self.machine = machine
        self.logger = logging.getLogger(name)
        self.console = console

    def for_machine(self, machine: str) -> "topoboxLogger":
        """Return a logger that tags every message with a machine name."""
        return topoboxLogger(self.name, machine=machine)

    def _log(self, level: int, message: str, **kwargs) -> None:
        extra = {"machine": self.machine} if self.machine else None
        self.logger.log(level, message, extra=extra, **kwargs)

    def _echo(self, style: str, marker: str, message: str) -> None:
        prefix = f"{self.machine}: " if self.machine else ""
        self.console.print(f"[{style}]{marker}{escape(prefix + message)}[/{style}]", highlight=False)

    def debug(self, message: str, console_output: bool = False) -> None:
        self._log(logging.DEBUG, message)
        if console_output or is_debug_mode():
            self._echo("dim", "\\[debug] ", message)

    def info(self, message: str, console_output: bool = True) -> None:
        self._log(logging.INFO, message)
        if console_output:
            self._echo("blue", "", message)

    def success(self, message: str, console_output: bool = True) -> None:
        self._log(SUCCESS_LEVEL, message)
        if console_output:
            self._echo("green", "✓ ", message)

    def warning(self, message: str, console_output: bool = True) -> None:
        self._log(logging.WARNING, message)
        if console_output:
            self._echo("yellow", "⚠ ", message)

    def error(self, message: str, exc: Optional[Exception] = None, console_output: bool = True) -> None:
        """Log an error; with exc, the file record gets its traceback."""
        if exc is not None:
            message = f"{message}: {exc}"
            self._log(logging.ERROR, message, exc_info=exc)
        else:
            self._log(logging.ERROR, message)
        if console_output:
            self._echo("red", "✗ ", message)


def get_logger(name: str) -> topoboxLogger:
    """Logger for a module, placed under the `topobox` tree.

    Example:
        logger = get_logger(__name__)
    """
    if not _configured:
        configure_logging()

    if not name.startswith("topobox"):
        name = f"topobox.{name}"
    return topoboxLogger(name)


def log_startup_info() -> None:
    """Write interpreter and environment details to the log file."""
    logger = get_logger("topobox.startup")
    logger.debug(f"Python {sys.version.split()[0]} on {sys.platform}, cwd {os.getcwd()}")
    logger.debug(f"Log file: {_get_log_file()}")

    for var in ("TOPOBOX_DEBUG", "TOPOBOX_LOG_LEVEL", "TOPOBOX_PROJECT_DIR", "TOPOBOX_BACKEND", "TOPOBOX_VAGRANT"):
        value = os.environ.get(var)
        if value:
            logger.debug(f"ENV {var}={value}")
