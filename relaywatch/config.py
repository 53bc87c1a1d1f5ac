"""Configuration management for relaywatch."""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict

from relaywatch.base import ConfigProvider
from relaywatch.constants import DEFAULT_RELAYS, RELAY_ALIASES
from relaywatch.models import Network


class RelayConfig(BaseModel):
    """MEV relay configuration."""
    model_config = ConfigDict(frozen=True)

    timeout: float = Field(5.0, gt=0, le=120, description="Per-request relay timeout in seconds")
    max_tries: int = Field(1, ge=1, le=5, description="Attempts per relay request on transport errors")
    aggregate_timeout: Optional[float] = Field(
        None, gt=0, description="Deadline for a whole fan-out query"
    )
    max_concurrency: Optional[int] = Field(
        None, ge=1, description="Cap on concurrent relay requests per fan-out"
    )
    relay_endpoints: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_RELAYS),
        description="MEV relay endpoints, optionally in https://<pubkey>@host form"
    )
    aliases: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in RELAY_ALIASES.items()},
        description="Relay aliases and groups"
    )

    @field_validator('relay_endpoints')
    @classmethod
    def validate_endpoints(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Validate endpoint URLs."""
        if not v:
            raise ValueError("At least one relay endpoint is required")
        for name, url in v.items():
            if not url.startswith(('http://', 'https://')):
                raise ValueError(f"Endpoint for relay {name!r} must start with http:// or https://")
        return v


class RelayWatchConfig(BaseModel):
    """Main relaywatch configuration."""
    model_config = ConfigDict(frozen=True)

    relay: RelayConfig = Field(default_factory=RelayConfig)
    network: Network = Network.MAINNET
    log_level: str = Field("INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    @field_validator('log_level', mode='before')
    @classmethod
    def uppercase_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class ConfigManager(ConfigProvider):
    """Configuration manager with validation and environment variable support."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        use_env_vars: bool = True
    ):
        self.config_path = Path(config_path) if config_path else Path.home() / ".relaywatch_config.json"
        self.use_env_vars = use_env_vars
        self._config: Optional[RelayWatchConfig] = None
        self.logger = logging.getLogger(__name__)

    def load(self) -> RelayWatchConfig:
        """Load configuration from file and/or environment variables."""
        config_dict: Dict[str, Any] = {}

        # Load from file if exists
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config_dict = json.load(f)
            except (OSError, ValueError) as e:
                self.logger.warning(f"Failed to load config from {self.config_path}: {e}")

        # Override with environment variables if enabled
        if self.use_env_vars:
            env_config = self._load_from_env()
            config_dict = self._merge_configs(config_dict, env_config)

        self._config = RelayWatchConfig(**config_dict)
        return self._config

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}
        relay: Dict[str, Any] = {}

        if log_level := os.getenv('RELAYWATCH_LOG_LEVEL'):
            config['log_level'] = log_level

        if network := os.getenv('RELAYWATCH_NETWORK'):
            config['network'] = network.lower()

        if timeout := os.getenv('RELAYWATCH_RELAY_TIMEOUT'):
            relay['timeout'] = timeout

        if max_tries := os.getenv('RELAYWATCH_RELAY_MAX_TRIES'):
            relay['max_tries'] = max_tries

        if aggregate_timeout := os.getenv('RELAYWATCH_AGGREGATE_TIMEOUT'):
            relay['aggregate_timeout'] = aggregate_timeout

        # Comma-separated name=url pairs replace the relay catalog
        if relays := os.getenv('RELAYWATCH_RELAYS'):
            endpoints = {}
            for pair in relays.split(','):
                if not pair.strip():
                    continue
                name, sep, url = pair.partition('=')
                if not sep:
                    raise ValueError(f"RELAYWATCH_RELAYS entry must be name=url, got {pair!r}")
                endpoints[name.strip()] = url.strip()
            relay['relay_endpoints'] = endpoints

        if relay:
            config['relay'] = relay
        return config

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            # Endpoint catalogs are replaced wholesale, never merged
            if key != 'relay_endpoints' and key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key."""
        if not self._config:
            self.load()

        value: Any = self._config
        for part in key.split('.'):
            if isinstance(value, dict) and part in value:
                value = value[part]
            elif hasattr(value, part):
                value = getattr(value, part)
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value (not supported for immutable config)."""
        raise NotImplementedError("Configuration is immutable after loading")

    def validate(self) -> bool:
        """Validate current configuration."""
        try:
            if not self._config:
                self.load()
            return True
        except Exception as e:
            self.logger.error(f"Configuration validation failed: {e}")
            return False

    def save_template(self, path: Optional[Path] = None) -> Path:
        """Save a configuration template file."""
        template = {
            "relay": {
                "timeout": 5.0,
                "max_tries": 1,
                "relay_endpoints": dict(DEFAULT_RELAYS),
            },
            "network": "mainnet",
            "log_level": "INFO",
        }

        save_path = Path(path) if path else self.config_path
        save_path.parent.mkdir(parents=True, exist_ok=True)

        with open(save_path, 'w') as f:
            json.dump(template, f, indent=2)

        self.logger.info(f"Configuration template saved to {save_path}")
        return save_path
