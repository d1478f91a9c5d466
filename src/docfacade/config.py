"""
Configuration management for Doc Facade.

This module provides configuration utilities for controlling behavior
of the encryption and reference resolution layer, including
development/production modes, key material and the legacy data policy.
"""

import logging
import os
import sys
from copy import deepcopy
from pathlib import Path

import yaml


logger = logging.getLogger(__name__)

_MODULE_KEY_PREFIX = "DOCFACADE_MODULE_KEY_"


class DocFacadeConfig:
    """
    Configuration for Doc Facade.

    Values come from built-in defaults, optionally overlaid by a YAML file,
    then by environment variables. Environment variables always win.
    """

    # Default configuration values
    _default_config: dict[str, object] = {
        "mode": "DEV",  # DEV or PROD
        "encryption": {
            "own_key": None,
            "module_keys": {},
            "on_legacy_plaintext": "passthrough",
        },
        "references": {
            "not_selected_label": "Not selected",
            "language": "en",
        },
        "database": {
            "url": "http://localhost:8529",
            "database": "docfacade",
            "username": "root",
            "password": "",
            "retry_attempts": 3,
        },
    }

    # Instance configuration values, loaded from file or environment
    _config: dict[str, object] = {}

    # Flag indicating if the configuration has been initialized
    _initialized: bool = False

    @classmethod
    def initialize(cls, config_path: str | None = None) -> None:
        """
        Initialize the configuration.

        Args:
            config_path: Optional path to a YAML configuration file
        """
        cls._config = deepcopy(cls._default_config)

        if config_path:
            cls._load_from_file(config_path)

        cls._load_from_env()

        cls._initialized = True

    @classmethod
    def _merge(cls, values: dict[str, object]) -> None:
        """Merge a loaded mapping into the configuration, one section deep."""
        for section, section_values in values.items():
            current = cls._config.get(section)
            if isinstance(section_values, dict) and isinstance(current, dict):
                current.update(section_values)
            else:
                cls._config[section] = section_values

    @classmethod
    def _load_from_file(cls, config_path: str) -> None:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file
        """
        path = Path(config_path)
        if not path.exists():
            logger.critical("Configuration file not found: %s", config_path)
            sys.exit(1)

        try:
            with open(path, "r") as f:
                file_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.critical("Error loading configuration file: %s", e)
            sys.exit(1)

        if file_config:
            cls._merge(file_config)

    @classmethod
    def _load_from_env(cls) -> None:
        """Load configuration from environment variables."""
        env_mode = os.environ.get("DOCFACADE_MODE")
        if env_mode in ("DEV", "PROD"):
            cls._config["mode"] = env_mode

        encryption = cls._config["encryption"]

        env_key = os.environ.get("DOCFACADE_ENCRYPTION_KEY")
        if env_key:
            encryption["own_key"] = env_key

        env_policy = os.environ.get("DOCFACADE_ON_LEGACY_PLAINTEXT")
        if env_policy:
            encryption["on_legacy_plaintext"] = env_policy.lower()

        # DOCFACADE_MODULE_KEY_HR=... becomes module_keys["HR"]
        module_keys = dict(encryption.get("module_keys") or {})
        for name, value in os.environ.items():
            if name.startswith(_MODULE_KEY_PREFIX) and value:
                module_keys[name[len(_MODULE_KEY_PREFIX):]] = value
        encryption["module_keys"] = module_keys

        env_label = os.environ.get("DOCFACADE_NOT_SELECTED_LABEL")
        if env_label:
            cls._config["references"]["not_selected_label"] = env_label

        env_language = os.environ.get("DOCFACADE_LANGUAGE")
        if env_language:
            cls._config["references"]["language"] = env_language

        database = cls._config["database"]
        for setting in ("url", "username", "password"):
            value = os.environ.get(f"DOCFACADE_DB_{setting.upper()}")
            if value:
                database[setting] = value

        env_db_name = os.environ.get("DOCFACADE_DB_NAME")
        if env_db_name:
            database["database"] = env_db_name

    @classmethod
    def _ensure_initialized(cls) -> None:
        """Ensure the configuration is initialized."""
        if not cls._initialized:
            cls.initialize()

    @classmethod
    def get(cls, key: str, default: object = None) -> object:
        """
        Get a configuration value.

        Args:
            key: The configuration key to retrieve, dots separate sections
            default: Default value to return if key is not found

        Returns:
            The configuration value, or default if not found
        """
        cls._ensure_initialized()

        if "." in key:
            value = cls._config
            for part in key.split("."):
                if isinstance(value, dict) and part in value:
                    value = value[part]
                else:
                    return default
            return value

        return cls._config.get(key, default)

    @classmethod
    def is_dev_mode(cls) -> bool:
        """Check if the system is in development mode."""
        return cls.get("mode") == "DEV"

    @classmethod
    def get_own_key(cls) -> str | None:
        """Get the base64 key used for this module's own entities."""
        return cls.get("encryption.own_key")

    @classmethod
    def get_module_keys(cls) -> dict[str, str]:
        """Get the base64 keys of other modules, keyed by module name."""
        return dict(cls.get("encryption.module_keys") or {})

    @classmethod
    def get_legacy_plaintext_policy(cls) -> str:
        """Get the configured policy name for non-envelope values on load."""
        return str(cls.get("encryption.on_legacy_plaintext", "passthrough"))

    @classmethod
    def get_not_selected_label(cls) -> str:
        """Get the label shown for reference fields with no value."""
        return str(cls.get("references.not_selected_label", "Not selected"))

    @classmethod
    def get_language(cls) -> str:
        """Get the language used for translated lookup labels."""
        return str(cls.get("references.language", "en"))

    @classmethod
    def get_database_url(cls) -> str:
        """Get the database URL."""
        return cls.get("database.url", "http://localhost:8529")

    @classmethod
    def get_database_credentials(cls) -> dict:
        """
        Get the database credentials.

        Returns:
            Dictionary containing database credentials
        """
        return {
            "username": cls.get("database.username", "root"),
            "password": cls.get("database.password", ""),
            "database": cls.get("database.database", "docfacade"),
        }

    @classmethod
    def get_retry_attempts(cls) -> int:
        """Get the number of attempts made for transient store failures."""
        return int(cls.get("database.retry_attempts", 3))

    @classmethod
    def load_from_secrets_file(cls, file_path: str) -> None:
        """
        Load configuration from a secrets file.

        Secrets files hold key material and database passwords and are kept
        out of the main configuration file. A missing secrets file is not
        fatal.

        Args:
            file_path: Path to the secrets file
        """
        cls._ensure_initialized()

        path = Path(file_path)
        if not path.exists():
            logger.warning("Secrets file not found: %s", file_path)
            return

        try:
            with open(path, "r") as f:
                secrets = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.critical("Error loading secrets file: %s", e)
            sys.exit(1)

        if secrets:
            cls._merge(secrets)

        logger.info("Loaded configuration from secrets file: %s", file_path)
