"""
Console logging for the workflow code generator.

Library modules log through ``logging.getLogger(__name__)`` under the
``workflow_codegen`` namespace; only the CLI attaches a handler, on stderr,
so generated source written to stdout stays clean.

Usage:
    from shared.logger import get_logger

    logger = get_logger("workflow_codegen", "DEBUG")
    logger.info("compiled %s", path)
"""

import logging
import sys
from typing import Dict, Optional, TextIO, Union

_loggers: Dict[str, logging.Logger] = {}

LOG_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(message)s'
DATE_FORMAT = '%H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Colors the level name when the target stream is a terminal"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_color: bool = True) -> None:
        super().__init__(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname)
        if not self.use_color or color is None:
            return super().format(record)
        # Handlers may share a record; color a copy.
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _is_terminal(stream: TextIO) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is when a record is emitted"""

    def __init__(self, level: int = logging.NOTSET) -> None:
        logging.Handler.__init__(self, level)

    @property
    def stream(self) -> TextIO:
        return sys.stderr


def _console_handler(stream: Optional[TextIO], level: int) -> logging.StreamHandler:
    if stream is None:
        handler = StderrHandler()
        use_color = _is_terminal(sys.stderr)
    else:
        handler = logging.StreamHandler(stream)
        use_color = _is_terminal(stream)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(use_color=use_color))
    return handler


def get_logger(
    name: str,
    level: Union[int, str] = logging.INFO,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Get a console logger with exactly one handler.

    Args:
        name: Logger name; child loggers (``name.*``) propagate to it
        level: Logging level, as a number or a level name
        stream: Where to write. When omitted the handler looks up
            ``sys.stderr`` on every record, so a swapped stderr is honored.

    Returns:
        Configured logger instance. Calling again with the same name
        replaces its handler instead of adding another one.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logger = _loggers.get(name)
    if logger is None:
        logger = logging.getLogger(name)
        logger.propagate = False
        _loggers[name] = logger

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.addHandler(_console_handler(stream, level))
    logger.setLevel(level)
    return logger
