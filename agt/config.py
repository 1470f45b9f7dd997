"""CLI configuration stored as YAML under ``~/.agents-cli/config.yaml``.

The configuration is loaded once per invocation and handed to each component
explicitly; nothing reads it from a global.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from agt.errors import ConfigError

DEFAULT_REGISTRY_URL = "https://raw.githubusercontent.com/chameleon-nexus/agents-registry/master"
DEFAULT_API_URL = "https://www.agthub.org"
CONFIG_DIR_NAME = ".agents-cli"

ENVIRONMENTS = {
    "local": "http://localhost:3000",
    "production": "https://www.agthub.org",
    "staging": "https://agthub-staging.vercel.app",
}

LOG_LEVELS = ("debug", "info", "warn", "error")


@dataclass
class RegistrySettings:
    url: str = DEFAULT_REGISTRY_URL
    cache_ttl: int = 300  # seconds
    timeout: float = 30.0  # seconds, per request


@dataclass
class InstallSettings:
    target: str = "claude-code"
    directory: str = "~/.agents"

    @property
    def directory_path(self) -> Path:
        return Path(os.path.expanduser(self.directory))

    @property
    def manifest_path(self) -> Path:
        return self.directory_path / "installed.json"


@dataclass
class LoggingSettings:
    level: str = "info"


@dataclass
class Config:
    """Process-wide settings for one CLI invocation."""

    registry: RegistrySettings = field(default_factory=RegistrySettings)
    install: InstallSettings = field(default_factory=InstallSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    api_url: str = DEFAULT_API_URL
    token: str = ""
    email: str = ""
    user_name: str = ""

    @property
    def environment(self) -> str | None:
        """Name of the predefined environment matching ``api_url``, if any."""
        for name, url in ENVIRONMENTS.items():
            if url == self.api_url:
                return name
        return None

    def to_dict(self) -> dict:
        data: dict = {
            "registry": {
                "url": self.registry.url,
                "cacheTtl": self.registry.cache_ttl,
                "timeout": self.registry.timeout,
            },
            "install": {
                "target": self.install.target,
                "directory": self.install.directory,
            },
            "logging": {"level": self.logging.level},
            "apiUrl": self.api_url,
        }
        # Credentials are only written once a login has happened.
        for key, value in (("token", self.token), ("email", self.email), ("userName", self.user_name)):
            if value:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Build a config from parsed YAML, filling gaps with defaults."""
        defaults = cls()
        registry = data.get("registry") or {}
        install = data.get("install") or {}
        logging_ = data.get("logging") or {}
        level = str(logging_.get("level", defaults.logging.level)).lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {', '.join(LOG_LEVELS)}")
        return cls(
            registry=RegistrySettings(
                url=registry.get("url", defaults.registry.url),
                cache_ttl=int(registry.get("cacheTtl", defaults.registry.cache_ttl)),
                timeout=float(registry.get("timeout", defaults.registry.timeout)),
            ),
            install=InstallSettings(
                target=install.get("target", defaults.install.target),
                directory=install.get("directory", defaults.install.directory),
            ),
            logging=LoggingSettings(level=level),
            api_url=data.get("apiUrl") or defaults.api_url,
            token=data.get("token") or "",
            email=data.get("email") or "",
            user_name=data.get("userName") or "",
        )


class ConfigStore:
    """Reads and writes the YAML config file."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else Path.home() / CONFIG_DIR_NAME / "config.yaml"

    def load(self) -> Config:
        """Load the config, creating the file with defaults if it is missing.

        Raises:
            ConfigError: if the file exists but is not a valid YAML mapping.
        """
        if not self.path.exists():
            config = Config()
            self.save(config)
            return config

        try:
            with open(self.path) as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, OSError) as e:
            raise ConfigError(f"Cannot read config file {self.path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.path} must contain a YAML mapping")

        try:
            return Config.from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigError(f"Invalid value in config file {self.path}: {e}") from e

    def save(self, config: Config) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)

    def reset(self) -> Config:
        config = Config()
        self.save(config)
        return config
