"""
Configuration & Logging
=======================

Global constants and logging setup for FemCore.

ModelConstants can be overridden by assigning class attributes before the
objects that read them are created, or by passing explicit values to the
methods that accept them.
"""
import logging
import sys
from typing import Optional


class ModelConstants:
    """Global constants for the model container and its collaborators."""
    MAX_HISTORY = 10                   # Max stored versions of a variable
    RANGE_BASIS_TOLERANCE = 1e-12      # Relative rank threshold (multiplier filter)
    DEFAULT_PENALIZATION = 1e9         # Penalized constraint brick coefficient
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_DATE_FORMAT = '%H:%M:%S'


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the logger of the 'FemCore' namespace.

    Parameters
    ----------
    level : int
        Logging level (e.g. logging.DEBUG, logging.INFO).
    log_file : str, optional
        Path of a file receiving a copy of the records.

    Returns
    -------
    logging.Logger
        The configured package logger.
    """
    logger = logging.getLogger("FemCore")
    logger.setLevel(level)

    # Avoid duplicated records when called more than once
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(ModelConstants.LOG_FORMAT,
                                  datefmt=ModelConstants.LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
    return logger
