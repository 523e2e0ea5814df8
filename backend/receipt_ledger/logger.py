"""
Logging setup for the receipt ledger.

Console logging is always enabled; file logging is optional and controlled by settings.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from receipt_ledger.config import Settings, settings as default_settings

LOGGER_NAME = "receipt_ledger"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: Optional[Settings] = None) -> logging.Logger:
    """
    Configures the package logger.

    Safe to call more than once: handlers are only attached the first time.

    Args:
        config: Settings to read LOG_LEVEL, ENABLE_FILE_LOGGING and LOG_DIR from.
            Defaults to the global settings instance.

    Returns:
        The configured package logger.
    """
    config = config or default_settings
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(config.LOG_LEVEL.upper())
    formatter = logging.Formatter(LOG_FORMAT)

    handler_types = {type(h) for h in logger.handlers}

    if logging.StreamHandler not in handler_types:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if config.ENABLE_FILE_LOGGING and logging.FileHandler not in handler_types:
        log_dir = Path(config.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"receipt_ledger_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
