import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


class Config:
    """Configuration manager that loads from YAML and merges with defaults.

    Environment variables in ENV_OVERRIDES win over both.
    """

    DEFAULTS = {
        "server": {
            "host": "0.0.0.0",
            "port": 5000,
            "debug": False,
            "name": None,
        },
        "store": {
            "backend": "elasticsearch",
            "max_logs": 10000,
        },
        "elasticsearch": {
            "url": "http://localhost:9200",
            "index_prefix": "logging-api",
            "request_timeout": 10,
            "username": None,
            "password": None,
            "verify_certs": True,
        },
        "jwt": {
            "key": "development-signing-key-change-me-0123456789",
            "issuer": "LoggingAPI",
            "audience": "LoggingAPIClients",
            "expires_days": 3650,
        },
        "validation": {
            "profile": "strict",
            "schema_path": None,
        },
        "query": {
            "default_size": 100,
            "max_size": 10000,
            "recent_size": 20,
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        },
    }

    ENV_OVERRIDES = {
        "ELASTICSEARCH_URL": ("elasticsearch", "url", str),
        "JWT_KEY": ("jwt", "key", str),
        "STORE_BACKEND": ("store", "backend", str),
        "VALIDATION_PROFILE": ("validation", "profile", str),
        "SERVER_PORT": ("server", "port", int),
        "SERVER_DEBUG": ("server", "debug", _parse_bool),
        "LOG_LEVEL": ("logging", "level", str.upper),
    }

    def __init__(self, config_path=None, env=None):
        self._config = copy.deepcopy(self.DEFAULTS)

        if config_path is not None:
            try:
                with open(config_path, "r") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    self._config = self._deep_merge(self._config, user_config)
            except FileNotFoundError:
                pass
            except yaml.YAMLError:
                logger.warning("Invalid YAML in %s, using defaults", config_path)

        self._apply_env(os.environ if env is None else env)

    def _apply_env(self, env):
        for var, (section, key, convert) in self.ENV_OVERRIDES.items():
            value = env.get(var)
            if value is None or value == "":
                continue
            try:
                self._config[section][key] = convert(value)
            except ValueError:
                logger.warning("Ignoring invalid value for %s: %r", var, value)

    @staticmethod
    def _deep_merge(base, override):
        """Recursively merge override dict into base dict."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    def get(self, key, default=None):
        """Get a top-level config key."""
        return self._config.get(key, default)

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config
