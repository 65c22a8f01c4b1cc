"""
Logging setup for the arbitrage bots
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

BOT_LOG_MAX_BYTES = 5 * 1024 * 1024
BOT_LOG_BACKUPS = 5


def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def get_bot_logger(token_symbol: str, source_market: str, target_market: str,
                   log_dir: Optional[str] = "log", level: str = "INFO") -> logging.Logger:
    """
    Per-pair logger writing everything to `<log_dir>/<token>-<source>-<target>.log`
    and only errors to the console.

    Args:
        token_symbol: Arbitraged asset symbol
        source_market: Name of the market the asset is bought on
        target_market: Name of the market the asset is sold on
        log_dir: Directory for the rotating log file, None for console only
    """
    name = f"{token_symbol}-{source_market}-{target_market}"
    logger = logging.getLogger(f"ammarb.bot.{name}")

    if not logger.handlers:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.ERROR)
        console_handler.setFormatter(_formatter())
        logger.addHandler(console_handler)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(os.path.join(log_dir, f"{name}.log"),
                                               maxBytes=BOT_LOG_MAX_BYTES, backupCount=BOT_LOG_BACKUPS)
            file_handler.setFormatter(_formatter())
            logger.addHandler(file_handler)

        logger.propagate = False

    return logger


def progress(mark: str) -> None:
    """Single-character activity mark on stdout"""
    sys.stdout.write(mark)
    sys.stdout.flush()


def setup_root_logger(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Setup root logger configuration for the entire application

    Args:
        level: Root logging level
        log_file: Optional file to write logs to
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(_formatter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(_formatter())
        root_logger.addHandler(file_handler)
