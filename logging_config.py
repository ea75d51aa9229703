"""Centralized logging configuration for the scrim results bot."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    log_to_file: bool = False,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    Configure logging for the bot.

    Args:
        level: Logging level (default: INFO)
        log_dir: Directory for log files (default: ./logs)
        log_to_file: Whether to write a timestamped log file (default: False)
        log_to_console: Whether to log to stdout (default: True)

    Returns:
        The configured 'scrimbot' logger
    """
    logger = logging.getLogger('scrimbot')
    logger.setLevel(level)

    # Clear any existing handlers
    logger.handlers = []

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    simple_formatter = logging.Formatter('%(levelname)s: %(name)s: %(message)s')

    if log_to_file:
        if log_dir is None:
            log_dir = Path('logs')
        log_dir.mkdir(exist_ok=True)

        log_file = log_dir / f'scrimbot_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log'
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(simple_formatter)
        logger.addHandler(console_handler)

    return logger
