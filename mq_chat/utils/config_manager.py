#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Loading and accessing mq_chat configuration from a YAML file."""

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/settings.yaml"
BROKER_URL_ENV = "MQ_CHAT_BROKER_URL"

DEFAULTS: Dict[str, Any] = {
    'broker': {
        'url': 'amqp://localhost',
        'durable_queues': True,
        'persistent_messages': False,
        'publisher_confirms': True,
        'prefetch_count': 1,
        'publish_retries': 0,
        'retry_delay': 1.0,
    },
    'logging': {
        'level': 'INFO',
        'console_logging': True,
        'console_level': 'WARNING',
        'file': 'logs/mq_chat.log',
        'format': "%(asctime)s [%(levelname)-7s] [%(name)-20s] [%(funcName)s:%(lineno)d] %(message)s",
    },
}


@dataclass(frozen=True)
class ChatSettings:
    """Resolved broker settings handed to BrokerClient at construction."""
    broker_url: str = DEFAULTS['broker']['url']
    durable_queues: bool = True
    persistent_messages: bool = False
    publisher_confirms: bool = True
    prefetch_count: int = 1
    publish_retries: int = 0
    retry_delay: float = 1.0


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _default(key):
    value = DEFAULTS
    for k in key.split('.'):
        value = value[k]
    return value


class ConfigManager:
    """Holds one loaded configuration. Values missing from the file fall back to DEFAULTS."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = _merge(DEFAULTS, config or {})
        self._config_path: Optional[Path] = None

    @classmethod
    def load_config(cls, config_path=None) -> 'ConfigManager':
        """
        Loads the configuration from the specified YAML file.

        With no path, config/settings.yaml under the working directory is used
        if present. A missing or malformed file yields the defaults.
        """
        explicit = config_path is not None
        path = Path(config_path if explicit else DEFAULT_CONFIG_PATH)
        data: Dict[str, Any] = {}
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
            logger.info(f"Configuration loaded successfully from {path}")
        except FileNotFoundError:
            if explicit:
                logger.error(f"Configuration file not found at {path}. Using defaults.")
            else:
                logger.debug(f"No configuration file at {path}. Using defaults.")
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration from {path}: {e}")

        if not isinstance(data, dict):
            logger.error(f"Configuration in {path} is not a mapping. Using defaults.")
            data = {}

        manager = cls(data)
        manager._config_path = path.resolve()
        return manager

    def get(self, key, default=None):
        """
        Retrieves a configuration value using a dot-separated key.
        Example: config.get('logging.level')
        """
        value = self._config
        for k in key.split('.'):
            if not isinstance(value, dict) or k not in value:
                logger.debug(f"Configuration key '{key}' not found. Returning default: {default}")
                return default
            value = value[k]
        return value

    def get_config_path(self):
        """Returns the path of the loaded configuration file."""
        return self._config_path

    def _setting(self, key, kind):
        """
        Typed lookup of a broker setting. Null falls back to the default; a
        value of the wrong type is logged and replaced by the default.
        """
        default = _default(key)
        value = self.get(key)
        if value is None or value == '':
            return default
        if kind in (bool, str):
            valid = isinstance(value, kind)
        elif isinstance(value, bool):
            # bool is an int subclass; true/false is not a number here
            valid = False
        else:
            try:
                value, valid = kind(value), True
            except (TypeError, ValueError):
                valid = False
        if valid:
            return value
        logger.error(f"Configuration key '{key}' must be of type {kind.__name__}, got {value!r}. Using default: {default}")
        return default

    def to_settings(self, broker_url: Optional[str] = None) -> ChatSettings:
        """Resolve broker settings: explicit broker_url, then environment, then file, then defaults."""
        url = broker_url or os.getenv(BROKER_URL_ENV) or self._setting('broker.url', str)
        return ChatSettings(
            broker_url=url,
            durable_queues=self._setting('broker.durable_queues', bool),
            persistent_messages=self._setting('broker.persistent_messages', bool),
            publisher_confirms=self._setting('broker.publisher_confirms', bool),
            prefetch_count=max(0, self._setting('broker.prefetch_count', int)),
            publish_retries=max(0, self._setting('broker.publish_retries', int)),
            retry_delay=max(0.0, self._setting('broker.retry_delay', float)),
        )
