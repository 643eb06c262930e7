import logging
import sys
from pathlib import Path
from typing import Optional
from logging.handlers import RotatingFileHandler

from colorama import Fore, Style, init

init(autoreset=True)

CONSOLE_FORMAT = '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s'
FILE_FORMAT = '[%(asctime)s] [%(levelname)s] [%(name)s] [%(funcName)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for console output."""
    COLORS = {
        'DEBUG': Fore.WHITE + Style.DIM,
        'INFO': Fore.CYAN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Style.BRIGHT
    }
    RESET = Style.RESET_ALL

    def format(self, record):
        # Work on a copy so the file handler never sees escape codes
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)

class LoggingConfigurator:
    """
    Configures root logging for a tuning run: colored console output and a
    rotating UTF-8 log file. Chatty third-party loggers are held at WARNING
    so per-fold DEBUG output stays readable.
    """

    LOG_FILE = "tuning.log"
    QUIET_LOGGERS = ("joblib", "numexpr", "matplotlib")

    def __init__(self, config: dict):
        self.config = config.get('logging', {})
        self.log_level = getattr(logging, self.config.get('level', 'INFO').upper())
        self.log_dir = Path(self.config.get('log_dir', 'logs'))
        self.log_file = self.log_dir / self.config.get('file_name', self.LOG_FILE)

    def setup(self) -> Optional[Path]:
        """
        Replace the root handlers.

        Returns:
            Path of the log file, or None when file logging is disabled.
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)
        root_logger.handlers = []

        if self.config.get('log_to_console', True):
            root_logger.addHandler(self._console_handler())

        for name in self.QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(self.log_level, logging.WARNING))

        if not self.config.get('log_to_file', True):
            return None

        self.log_dir.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(self.log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding='utf-8')
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root_logger.addHandler(handler)
        return self.log_file

    def _console_handler(self) -> logging.Handler:
        if sys.platform == 'win32':
            sys.stdout.reconfigure(encoding='utf-8')

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self.log_level)
        formatter_cls = ColoredFormatter if self.config.get('colorful_console', True) else logging.Formatter
        handler.setFormatter(formatter_cls(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
        return handler

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)
