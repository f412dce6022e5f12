import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from battlestats.config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _file_handler(formatter: logging.Formatter) -> logging.Handler:
    log_dir = Path(Config.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Rolls over at UTC midnight, keeping a week of engine logs
    handler = TimedRotatingFileHandler(
        log_dir / 'battlestats.log',
        when='midnight',
        backupCount=7,
        encoding='utf-8',
        utc=True
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Setup a logger for engine components.

    Console output goes to stdout at DEBUG or INFO depending on Config.DEBUG.
    A rotating file handler is added when LOG_TO_FILE is set. Calling this
    twice for the same name returns the already configured logger.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    if level is None:
        level = logging.DEBUG if Config.DEBUG else logging.INFO
    logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if Config.LOG_TO_FILE:
        logger.addHandler(_file_handler(formatter))

    return logger
