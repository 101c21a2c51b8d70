#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Logging configuration for mq_chat."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config_manager import ConfigManager


def setup_logging(config: ConfigManager, level_override: Optional[str] = None):
    """
    Configure the root logger from the 'logging' section of the configuration:
    - Rotating log file (skipped when logging.file is empty).
    - Console output on stderr (optional), so chat lines on stdout stay clean.
    """
    log_level_str = str(level_override or config.get('logging.level', 'INFO')).upper()
    console_logging = config.get('logging.console_logging', True)
    log_format_str = config.get('logging.format')
    log_file_path_str = config.get('logging.file')

    numeric_log_level = getattr(logging, log_level_str, logging.INFO)
    log_formatter = logging.Formatter(log_format_str, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_log_level)

    # Remove existing handlers to avoid duplicates on repeated calls
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    log_file_full_path = None
    if log_file_path_str:
        log_file_full_path = Path(log_file_path_str).resolve()
        log_file_full_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file_full_path, maxBytes=5*1024*1024, backupCount=3, encoding='utf-8'
        )
        file_handler.setFormatter(log_formatter)
        file_handler.setLevel(numeric_log_level)
        root_logger.addHandler(file_handler)

    if console_logging:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        # --debug overrides the console level too
        console_log_level_str = str(level_override or config.get('logging.console_level', log_level_str)).upper()
        console_handler.setLevel(getattr(logging, console_log_level_str, numeric_log_level))
        root_logger.addHandler(console_handler)

    # pika logs every frame exchange at DEBUG/INFO
    logging.getLogger("pika").setLevel(logging.WARNING)

    logger = logging.getLogger('mq_chat')
    logger.info(f"Logging configured. Level: {log_level_str}. File: {log_file_full_path}")
    return logger
