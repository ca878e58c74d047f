# ec_demo/utils/logger.py

import logging
import logging.handlers
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_FILE_NAME = 'ec_demo.log'

CONSOLE_FORMAT = '%(asctime)s - [%(levelname)s] - %(message)s'
CONSOLE_DATE_FORMAT = '%H:%M:%S'
# Worker threads are named after the event they wait on, so the thread is recorded too.
FILE_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - [%(levelname)s] - %(filename)s:%(lineno)d - %(message)s'
FILE_MAX_BYTES = 5 * 1024 * 1024
FILE_BACKUPS = 5


def console_handler() -> logging.StreamHandler:
    """Operator-facing output on stderr, INFO and above."""
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATE_FORMAT))
    return handler


def file_handler(path: Path) -> logging.handlers.RotatingFileHandler:
    """Everything down to DEBUG: discarded notification codes, malformed packets, worker exits."""
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=FILE_MAX_BYTES, backupCount=FILE_BACKUPS, encoding='utf-8'
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


class LoggerManager:
    """
    Owns the root logger configuration for both front ends.

    The dashboard logs to the console and to `ec_demo.log`. The `tail`
    command prints decoded firmware lines on stdout itself, so it asks for
    the file only.
    """

    def __init__(self, log_dir: Path = PROJECT_ROOT, log_level=logging.DEBUG, console: bool = True):
        self.log_file_path = Path(log_dir) / LOG_FILE_NAME
        self.log_level = log_level
        self.console = console
        self.root_logger = logging.getLogger()

    def setup(self) -> bool:
        """Attaches the handlers. Returns False if the root logger was already configured."""
        if self.root_logger.hasHandlers():
            return False

        self.root_logger.setLevel(self.log_level)
        if self.console:
            self.root_logger.addHandler(console_handler())
        self.root_logger.addHandler(file_handler(self.log_file_path))

        logging.info(f"Logging to {self.log_file_path}")
        return True


def setup_logging(console: bool = True):
    """Configures logging for the process; later calls are no-ops."""
    LoggerManager(console=console).setup()
