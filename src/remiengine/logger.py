"""
Logging setup for command-line use.

Library modules only ever call `logging.getLogger(__name__)`; handlers are
installed here, by the CLI, so embedding applications keep control of output.

    from remiengine.logger import setup_logging, get_logger

    setup_logging("DEBUG")
    logger = get_logger(__name__)
    logger.info("Optimal rate: %.2f mg/kg/h", rate)
"""
import logging
import sys
from pathlib import Path
from typing import Optional, Union

import colorlog


DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
COLOR_FORMAT = '%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s - %(message)s'

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}


def setup_logging(
    log_level: str = 'INFO',
    log_file: Optional[Union[str, Path]] = None
) -> None:
    """
    Configure the root logger.

    Args:
        log_level: 'DEBUG', 'INFO', 'WARNING' or 'ERROR'
        log_file: Optional path; when given, a plain-text copy of the log is
            written there as well.

    Raises:
        ValueError: If log_level is not a known level name
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = colorlog.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        COLOR_FORMAT,
        log_colors=LOG_COLORS,
        reset=True,
        style='%'
    ))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
