import logging
import sys
from typing import Optional

from utils.config import Config


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Errors also go to a file so they survive a restart
    log_file = log_file or Config.LOG_FILE
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.ERROR)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Could not create log file {log_file}: {e}")

    # passlib logs a noisy warning when it reads the bcrypt backend version
    logging.getLogger('passlib.handlers.bcrypt').setLevel(logging.ERROR)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
