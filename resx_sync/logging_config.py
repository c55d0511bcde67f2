import logging
import os
import sys
from typing import List, Optional, TextIO

from tqdm import tqdm

LOGGER_NAME = "resx_sync"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


class TqdmLoggingHandler(logging.Handler):
    """Writes records through ``tqdm.write`` so they land above active progress bars."""

    def __init__(self, stream: Optional[TextIO] = None, level=logging.NOTSET):
        super().__init__(level)
        self.stream = stream

    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=self.stream or sys.stderr)
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception:
            self.handleError(record)


def _file_handler(log_file_path: str) -> logging.Handler:
    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    return logging.FileHandler(log_file_path, encoding='utf-8')


def _replace_handlers(logger: logging.Logger, handlers: List[logging.Handler]) -> None:
    for old_handler in list(logger.handlers):
        logger.removeHandler(old_handler)
        old_handler.close()
    for handler in handlers:
        logger.addHandler(handler)


def setup_logger(log_level_str: str, log_file_path: Optional[str], log_to_console: bool) -> logging.Logger:
    """
    Configure the ``resx_sync`` package logger for one run.

    Modules log through ``logging.getLogger(__name__)``, so their records reach
    the handlers installed here. Calling this again swaps the handlers rather
    than stacking new ones.

    Args:
        log_level_str: Level name such as 'INFO' or 'DEBUG'; unknown names mean INFO.
        log_file_path: Log file to append to, or None/empty for no file log.
        log_to_console: Whether to echo records to stderr via tqdm.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level_str.upper(), logging.INFO))
    logger.propagate = False

    handlers: List[logging.Handler] = []
    if log_file_path:
        handlers.append(_file_handler(log_file_path))
    if log_to_console:
        handlers.append(TqdmLoggingHandler())

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    _replace_handlers(logger, handlers)

    return logger
