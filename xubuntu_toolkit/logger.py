# ----------------------------------------------------------------
# Logger Setup
# ----------------------------------------------------------------
import logging
import os
from pathlib import Path
from typing import Union

from rich.logging import RichHandler

from xubuntu_toolkit.ui import console

LOGGER_NAME = "xubuntu_toolkit"


def setup_logger(log_file: Union[str, Path], debug: bool = False) -> logging.Logger:
    """
    Configure a logger with Rich formatting and persistent file logging.

    Args:
        log_file: Path to the log file
        debug: Log at DEBUG instead of INFO

    Returns:
        Configured logger instance
    """
    log_file = Path(log_file)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Remove any existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=False,
        show_time=True,
        show_path=False,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(rich_handler)

    fmt = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)
        os.chmod(str(log_file), 0o600)  # Secure the log file
    except OSError as e:
        logger.warning(f"Could not set up file logging to {log_file}: {e}")

    return logger
