"""
Centralized logging configuration for claimdrop.

Every module logs through claimdrop.<subsystem> (enumerator, commitment,
ledger, events, claim, push, emergency, storage.*, cli). The first
get_logger() call installs a default INFO console handler; setup_logging()
may be called again later (the CLI does, after reading its config) and
replaces the handlers.

Subsystem levels let a noisy area be turned up or down on its own, e.g.
per-item lookups at DEBUG while the ledger stays at INFO:

    setup_logging("INFO", subsystem_levels={"enumerator": "DEBUG"})
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Union

import colorlog

ROOT_LOGGER = "claimdrop"
LOG_FILE = "claimdrop.log"

Level = Union[int, str]

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def parse_level(level: Level) -> int:
    """Accept a logging constant or a name such as "debug"."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


class ClaimdropLogger:
    """Owns the handlers on the claimdrop root logger"""

    _configured = False
    _log_file: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: Level = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
        subsystem_levels: Optional[Dict[str, Level]] = None,
    ):
        """
        (Re)configure logging.

        Args:
            level: Level for the claimdrop root logger
            log_dir: Directory for claimdrop.log. If None, uses ./logs
            log_to_file: Whether to also write logs to claimdrop.log
            subsystem_levels: subsystem name -> level overrides
        """
        root_level = parse_level(level)
        overrides = {name: parse_level(lvl) for name, lvl in (subsystem_levels or {}).items()}
        # Handlers must pass the most verbose level any subsystem asks for
        handler_level = min([root_level, *overrides.values()])

        root_logger = logging.getLogger(ROOT_LOGGER)
        root_logger.setLevel(root_level)
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()
        root_logger.propagate = False

        console_handler = colorlog.StreamHandler(sys.stdout)
        console_handler.setLevel(handler_level)
        console_handler.setFormatter(colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors=LOG_COLORS,
        ))
        root_logger.addHandler(console_handler)

        cls._log_file = None
        if log_to_file:
            log_path = Path(log_dir) if log_dir else Path("logs")
            log_path.mkdir(parents=True, exist_ok=True)
            cls._log_file = log_path / LOG_FILE

            file_handler = logging.FileHandler(cls._log_file)
            file_handler.setLevel(handler_level)
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
            root_logger.addHandler(file_handler)

        for name, sub_level in overrides.items():
            logging.getLogger(f"{ROOT_LOGGER}.{name}").setLevel(sub_level)

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Logger for a subsystem; installs the default handler on first use."""
        if not cls._configured:
            cls.setup()
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")

    @classmethod
    def log_file(cls) -> Optional[Path]:
        return cls._log_file


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return ClaimdropLogger.get_logger(name)


def setup_logging(
    level: Level = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
    subsystem_levels: Optional[Dict[str, Level]] = None,
):
    """Setup logging configuration"""
    ClaimdropLogger.setup(
        level=level,
        log_dir=log_dir,
        log_to_file=log_to_file,
        subsystem_levels=subsystem_levels,
    )
