import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the ``pitchkeys`` logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of a file that receives the same records.

    Returns:
        logging.Logger: The configured package logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("pitchkeys")
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    # stderr keeps the log apart from the live tuner line on stdout
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def nearest_power_of_two(value: float) -> int:
    """Return the power of two closest to ``value``.

    Ties resolve to the larger power.  Values below one return ``1``.

    Parameters
    ----------
    value:
        Target size, e.g. ``sample_rate / 20``.

    Returns
    -------
    int
        A power of two.
    """

    if value <= 1:
        return 1
    upper = 1
    while upper < value:
        upper <<= 1
    lower = upper >> 1
    if lower >= 1 and value - lower < upper - value:
        return lower
    return upper


__all__ = ["setup_logging", "nearest_power_of_two", "LOG_FORMAT"]
