"""
Logging for the clearing engine.

Every subsystem logs under the `cca` hierarchy (`cca.auction`,
`cca.ticks`, `cca.factory`, ...). Several auctions can run in one
process, so the auction itself logs through an `AuctionLogAdapter` that
tags each line with the auction's short id:

    2025-01-01 12:00:00 [cca.auction] INFO     [0x3f9a1c20] Bid 0 from 0xaaaaaaaa: ...

Console output is colored (colorlog) and goes to stderr, leaving stdout
to the CLI. A plain-text file handler is added when `log_to_file` is set.
"""

import logging
import sys
from pathlib import Path
from typing import Any, MutableMapping, Optional, Tuple, Union

import colorlog

ROOT_LOGGER = "cca"
LOG_FILE = "cca.log"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def resolve_level(level: Union[int, str]) -> int:
    """
    Turn a level name ("debug", "INFO") or number into a logging level.

    Raises:
        ValueError: unknown level name
    """
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


class CCALogger:
    """Owns the handlers of the `cca` logger hierarchy."""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: Union[int, str] = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
        force: bool = False,
    ):
        """
        Install the console (and optional file) handlers.

        Args:
            level: Logging level, as a number or a name
            log_dir: Directory for cca.log (default ./logs)
            log_to_file: Also write plain-text logs to log_dir
            force: Replace handlers installed by an earlier call
        """
        if cls._initialized and not force:
            return
        level = resolve_level(level)

        root_logger = logging.getLogger(ROOT_LOGGER)
        root_logger.setLevel(level)
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

        console_handler = colorlog.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            colorlog.ColoredFormatter(
                "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
                datefmt=DATE_FORMAT,
                log_colors=LOG_COLORS,
            )
        )
        root_logger.addHandler(console_handler)

        cls._log_dir = None
        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            cls._log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(cls._log_dir / LOG_FILE)
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(file_handler)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Logger for a subsystem, e.g. 'auction' or 'ticks'."""
        if not cls._initialized:
            cls.setup()
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")

    @classmethod
    def log_file(cls) -> Optional[Path]:
        """Path of the log file, or None when logging to console only."""
        return cls._log_dir / LOG_FILE if cls._log_dir is not None else None


class AuctionLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the auction's short id."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['auction']}] {msg}", kwargs


# =============================================================================
# Convenience Functions
# =============================================================================


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return CCALogger.get_logger(name)


def get_auction_logger(auction_id: Optional[str]) -> AuctionLogAdapter:
    """Auction logger tagged with `auction_id` ("local" for auctions built directly)."""
    tag = auction_id[:10] if auction_id else "local"
    return AuctionLogAdapter(get_logger("auction"), {"auction": tag})


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
):
    """(Re)configure logging for the whole engine."""
    CCALogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file, force=True)


def configure_from(engine_config, debug: bool = False) -> None:
    """
    Configure logging from an EngineConfig.

    Args:
        engine_config: Provides log_level, log_dir and log_to_file
        debug: Force DEBUG regardless of the configured level
    """
    level = logging.DEBUG if debug else resolve_level(engine_config.log_level)
    setup_logging(level=level, log_dir=str(engine_config.log_dir), log_to_file=engine_config.log_to_file)
