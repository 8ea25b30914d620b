"""
Configuration management for the Journal Portal client.

This module handles client configuration including the API URL, request
timeout and session-renewal settings, with support for configuration files
and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from configparser import ConfigParser

from journal_shared.exceptions import ConfigurationError, ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = """# Journal Portal client configuration
# Configuration file: {config_path}

[server]
# Base URL of the portal API
url = http://localhost:5000/api

# Total request timeout in seconds
timeout = 30

[session]
# Seconds during which no refresh is attempted after a failed one
refresh_cooldown = 30

# Route of the application's login page
login_path = /login

# Credential storage: secure (keyring / encrypted file) or memory
token_backend = secure

# Share one in-flight refresh between concurrent failures
serialize_refreshes = false

[logging]
# Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
level = INFO

# Output format: standard, json, detailed
format = standard
"""


class ClientConfiguration:
    """
    Configuration manager for the Journal Portal client.

    Supports configuration from:
    1. Explicit overrides (highest priority)
    2. Environment variables
    3. Configuration file
    4. Default values (lowest priority)
    """

    ENV_MAPPINGS = {
        'JOURNAL_API_URL': ('server', 'url'),
        'JOURNAL_API_TIMEOUT': ('server', 'timeout'),
        'JOURNAL_REFRESH_COOLDOWN': ('session', 'refresh_cooldown'),
        'JOURNAL_LOGIN_PATH': ('session', 'login_path'),
        'JOURNAL_TOKEN_BACKEND': ('session', 'token_backend'),
        'JOURNAL_SERIALIZE_REFRESHES': ('session', 'serialize_refreshes'),
        'JOURNAL_LOG_LEVEL': ('logging', 'level'),
        'JOURNAL_LOG_FILE': ('logging', 'file'),
    }

    DEFAULTS = {
        'server': {
            'url': 'http://localhost:5000/api',
            'timeout': 30.0,
        },
        'session': {
            'refresh_cooldown': 30.0,
            'login_path': '/login',
            'token_backend': 'secure',
            'serialize_refreshes': False,
        },
        'logging': {
            'level': 'INFO',
            'file': None,
            'format': 'standard',
        },
    }

    def __init__(self, config_file: Optional[str] = None, create_default: bool = True):
        self._config_file = config_file or self._get_default_config_path(create_default)
        self._config_data: Dict[str, Any] = {}
        self._overrides: Dict[str, Any] = {}

        self._load_configuration()

    def _get_default_config_path(self, create_default: bool) -> str:
        """Get default configuration file path, creating the file on first use."""
        config_dir = Path.home() / '.journal-portal'
        config_path = config_dir / 'client.conf'

        if create_default and not config_path.exists():
            try:
                config_dir.mkdir(parents=True, exist_ok=True)
                config_path.write_text(DEFAULT_CONFIG.format(config_path=config_path))
                logger.info(f"Created default configuration file: {config_path}")
            except OSError as e:
                logger.warning(f"Failed to create default configuration: {e}")

        return str(config_path)

    def _load_configuration(self) -> None:
        """Load configuration from file and environment variables."""
        if os.path.exists(self._config_file):
            try:
                self._load_from_file()
                logger.debug(f"Configuration loaded from: {self._config_file}")
            except Exception as e:
                logger.warning(f"Failed to load configuration file: {e}")
        else:
            logger.debug(f"Configuration file not found: {self._config_file}")

        self._load_from_environment()
        self._set_defaults()

    def _load_from_file(self) -> None:
        """Load configuration from INI file."""
        config = ConfigParser()
        config.read(self._config_file)

        for section_name in config.sections():
            section_data = {}
            for key, value in config[section_name].items():
                try:
                    section_data[key] = json.loads(value)
                except (json.JSONDecodeError, ValueError):
                    section_data[key] = value

            self._config_data[section_name] = section_data

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            value = os.environ.get(env_var)
            if value is None:
                continue

            section_data = self._config_data.setdefault(section, {})
            if value.lower() in ('true', 'false'):
                section_data[key] = value.lower() == 'true'
            else:
                try:
                    section_data[key] = float(value) if '.' in value else int(value)
                except ValueError:
                    section_data[key] = value

    def _set_defaults(self) -> None:
        """Fill in default values for missing settings."""
        for section, section_defaults in self.DEFAULTS.items():
            section_data = self._config_data.setdefault(section, {})
            for key, default_value in section_defaults.items():
                section_data.setdefault(key, default_value)

    def get_config(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if key in self._overrides:
            return self._overrides[key]

        if '.' not in key:
            return self._config_data.get(key, default)

        section, config_key = key.split('.', 1)
        return self._config_data.get(section, {}).get(config_key, default)

    def set_config(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            value: Value to set
        """
        if '.' not in key:
            self._config_data[key] = value
            return

        section, config_key = key.split('.', 1)
        self._config_data.setdefault(section, {})[config_key] = value

    def set_override(self, key: str, value: Any) -> None:
        """Set configuration override (highest priority)."""
        self._overrides[key] = value

    def save_configuration(self) -> None:
        """Save current configuration to file."""
        config = ConfigParser()

        for section_name, section_data in self._config_data.items():
            config.add_section(section_name)
            for key, value in section_data.items():
                if value is None:
                    continue
                if isinstance(value, (dict, list, bool)):
                    config.set(section_name, key, json.dumps(value))
                else:
                    config.set(section_name, key, str(value))

        config_path = Path(self._config_file)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self._config_file, 'w') as f:
            config.write(f)

        logger.info(f"Configuration saved to: {self._config_file}")

    def reload_configuration(self) -> None:
        """Reload configuration from file and environment."""
        self._config_data.clear()
        self._load_configuration()
        logger.info("Configuration reloaded")

    def get_all_config(self) -> Dict[str, Any]:
        return self._config_data.copy()

    def get_config_file_path(self) -> str:
        return self._config_file

    # Convenience accessors

    def get_api_url(self) -> str:
        return str(self.get_config('server.url')).rstrip('/')

    def get_request_timeout(self) -> float:
        return self._positive_number('server.timeout')

    def get_refresh_cooldown(self) -> float:
        return self._positive_number('session.refresh_cooldown', allow_zero=True)

    def get_login_path(self) -> str:
        return self.get_config('session.login_path', '/login')

    def get_token_backend(self) -> str:
        backend = self.get_config('session.token_backend', 'secure')
        if backend not in ('secure', 'memory'):
            raise ConfigurationError(
                f"Unknown token backend: {backend}",
                ErrorCode.CONFIG_INVALID_VALUE,
                config_key='session.token_backend'
            )
        return backend

    def get_serialize_refreshes(self) -> bool:
        return bool(self.get_config('session.serialize_refreshes', False))

    def get_log_level(self) -> str:
        return str(self.get_config('logging.level', 'INFO')).upper()

    def get_log_file(self) -> Optional[str]:
        return self.get_config('logging.file')

    def get_log_format(self) -> str:
        return self.get_config('logging.format', 'standard')

    def _positive_number(self, key: str, allow_zero: bool = False) -> float:
        value = self.get_config(key)
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Invalid numeric value for {key}: {value!r}",
                ErrorCode.CONFIG_INVALID_VALUE,
                config_key=key
            )
        if number < 0 or (number == 0 and not allow_zero):
            raise ConfigurationError(
                f"Value for {key} must be positive: {value!r}",
                ErrorCode.CONFIG_INVALID_VALUE,
                config_key=key
            )
        return number
