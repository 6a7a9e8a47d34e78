"""Logging setup for the CLI"""

import logging
import os
from typing import Optional

FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = "info", debug: bool = False, log_file: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Level name used when debug is off
        debug: Force DEBUG level
        log_file: Optional file to append log records to
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO))

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(os.path.abspath(log_file), mode='a', encoding='utf-8')
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # aiohttp and httpx are chatty at DEBUG
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("aiohttp").setLevel(logging.WARNING)
