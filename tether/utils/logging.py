import logging
import sys
from pathlib import Path
from typing import Optional, Union


def setup_logging(
    level: int = logging.WARNING,
    log_file: Optional[Union[str, Path]] = None,
    file_level: int = logging.INFO,
):
    """
    Setup logging for the application.

    Console output stays quiet by default because tether runs on every shell
    start; the log file keeps the full record of refreshes and installs.
    """
    logger = logging.getLogger("tether")
    logger.setLevel(min(level, file_level) if log_file else level)

    # Prevent adding handlers if they already exist
    if not logger.handlers:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        # Console handler
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        # File handler if log_file is provided
        if log_file:
            try:
                Path(log_file).parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_file)
            except OSError as e:
                logger.warning(f"Cannot open log file {log_file}: {e}")
            else:
                file_handler.setLevel(file_level)
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)

    return logger


def get_logger(name: str):
    """
    Get a logger with the given name under the 'tether' namespace.
    """
    if name.startswith("tether."):
        return logging.getLogger(name)
    return logging.getLogger(f"tether.{name}")
