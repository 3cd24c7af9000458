"""
Application logging.

Everything logs through the ``worklist_sync`` logger: console output plus a
rotating worklist.log. Integration clients (Sheets, Drive, ClassNavi) use
named children so their lines can be told apart.
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = 'worklist_sync'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_FILE_NAME = 'worklist.log'
MAX_LOG_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


def log_directory() -> Optional[Path]:
    """Directory for worklist.log from LOG_DIR; None when LOG_DIR=off."""
    setting = os.getenv('LOG_DIR', '').strip()
    if setting.lower() == 'off':
        return None
    return Path(setting) if setting else Path(__file__).resolve().parent.parent / 'logs'


def setup_logger(name: str = LOGGER_NAME, log_level: Optional[str] = None) -> logging.Logger:
    """Configure the application logger once; later calls return it unchanged."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level_name = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # Console shows DEBUG only when LOG_LEVEL asks for it
    console_handler = logging.StreamHandler()
    console_handler.setLevel(min(logger.level, logging.INFO))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_dir = log_directory()
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8',
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Child of the application logger, e.g. ``worklist_sync.classnavi``."""
    return logger.getChild(component)


logger = setup_logger()
