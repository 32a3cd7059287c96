import logging
import sys

from colorama import Fore, Style
from colorama import init as colorama_init

from devicecast.control.config import settings

SUCCESS = 25
ROOT_LOGGER_NAME = "devicecast"

logging.addLevelName(SUCCESS, "SUCCESS")


class ColoredFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: Fore.LIGHTBLACK_EX,
        logging.INFO: Fore.CYAN,
        SUCCESS: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "")
        message = super().format(record)
        return f"{color}{message}{Style.RESET_ALL}"


def _configure_root_logger():
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return
    colorama_init()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColoredFormatter("[DeviceCast] %(levelname)s %(name)s - %(message)s"))
    root.addHandler(handler)
    root.setLevel(settings.LOG_LEVEL.upper())


class DeviceCastLogger:
    """
    Thin wrapper over a stdlib logger.

    Adds a `success` level and `warning_once` for configuration warnings that
    would otherwise be repeated on every call.
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)
        self._warned: set[str] = set()

    @property
    def name(self) -> str:
        return self._logger.name

    def debug(self, msg: str, *args, **kwargs):
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._logger.info(msg, *args, **kwargs)

    def success(self, msg: str, *args, **kwargs):
        self._logger.log(SUCCESS, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._logger.warning(msg, *args, **kwargs)

    def warning_once(self, msg: str):
        if msg in self._warned:
            return
        self._warned.add(msg)
        self._logger.warning(msg)

    def error(self, msg: str, *args, **kwargs):
        self._logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        self._logger.exception(msg, *args, **kwargs)


def get_logger(name: str) -> DeviceCastLogger:
    _configure_root_logger()
    return DeviceCastLogger(name)
