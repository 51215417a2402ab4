"""
Coloured ``[grabfiles]`` console logging for the CLI.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

from colorama import Fore, Style, init as colorama_init

_COLOURS = {
    logging.DEBUG: Style.DIM,
    logging.INFO: "",
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


class ColourFormatter(logging.Formatter):
    def __init__(self, colour: bool = True) -> None:
        super().__init__("[grabfiles] %(levelname)s: %(message)s")
        self.colour = colour

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        colour = _COLOURS.get(record.levelno, "") if self.colour else ""
        return f"{colour}{msg}{Style.RESET_ALL}" if colour else msg


def level_for_verbosity(verbose: int) -> int:
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(verbose: int = 0, stream: Optional[TextIO] = None) -> logging.Logger:
    """Attach a single coloured stderr handler to the ``grabfiles`` logger."""
    colorama_init()
    stream = stream or sys.stderr
    logger = logging.getLogger("grabfiles")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColourFormatter(colour=stream.isatty()))
    logger.addHandler(handler)
    logger.setLevel(level_for_verbosity(verbose))
    logger.propagate = False
    return logger
