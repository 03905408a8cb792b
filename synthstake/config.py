"""
SynthStake Configuration System

Unified configuration management with YAML files, environment variables,
validation, and runtime updates.

Configuration Sources (in order of precedence):
    1. Environment variables (SYNTHSTAKE_*)
    2. Runtime overrides and an explicit --config file
    3. User config file (~/.synthstake/config.yaml)
    4. Project config files (./config/synthstake.yaml, then ./synthstake.yaml)
    5. Default values

The CLI loads the user and project files through load_defaults().

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

from synthstake.hardening import DEFAULT_DECIMAL_PLACES, MAX_EPOCH, StakeError

T = TypeVar("T")


class ConfigError(StakeError):
    """Configuration error."""

    error_code = "config_error"


class ConfigValidationError(ConfigError):
    """Configuration validation error."""

    error_code = "config_validation_error"


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding,
    validation, and change callbacks.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)
    _callbacks: List[Callable[[T, T], None]] = field(default_factory=list, repr=False)

    def get(self) -> T:
        """Get the current value; environment values are validated like set()."""
        if self.env_var and self.env_var in os.environ:
            value = self._coerce(os.environ[self.env_var])
            if self.validator and not self.validator(value):
                raise ConfigValidationError(f"Invalid value for {self.env_var}: {value}")
            return value

        return self._value if self._value is not None else self.default

    def set(self, value: T) -> None:
        """Set the value with validation."""
        value = self._coerce(value) if isinstance(value, str) else value
        if self.validator and not self.validator(value):
            raise ConfigValidationError(f"Invalid value for config: {value}")

        old_value = self.get()
        self._value = value

        for callback in self._callbacks:
            callback(old_value, value)

    def reset(self) -> None:
        """Drop any runtime override."""
        self._value = None

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        try:
            if target_type == bool:
                return value.lower() in ("true", "1", "yes", "on")  # type: ignore
            elif target_type == int:
                return int(value)  # type: ignore
            elif target_type == Decimal:
                return Decimal(value)  # type: ignore
            return value  # type: ignore
        except (ValueError, ArithmeticError) as e:
            raise ConfigValidationError(f"Cannot coerce {value!r} to {target_type.__name__}") from e

    def on_change(self, callback: Callable[[T, T], None]) -> None:
        """Register a change callback."""
        self._callbacks.append(callback)


@dataclass
class StakingConfig:
    """Configuration for the staking components."""
    unstake_delay_epochs: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=7,
        env_var="SYNTHSTAKE_UNSTAKE_DELAY",
        description="Default unstake delay in epochs for new components",
        validator=lambda x: isinstance(x, int) and 0 < x <= MAX_EPOCH,
    ))
    epoch_duration_minutes: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=5,
        env_var="SYNTHSTAKE_EPOCH_MINUTES",
        description="Approximate wall-clock length of one epoch, for status reports",
        validator=lambda x: isinstance(x, int) and x > 0,
    ))
    decimal_places: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=18,
        env_var="SYNTHSTAKE_DECIMAL_PLACES",
        description="Fractional digits kept by pool ratio arithmetic",
        validator=lambda x: isinstance(x, int) and 0 <= x <= DEFAULT_DECIMAL_PLACES,
    ))
    max_epoch: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=MAX_EPOCH,
        env_var="SYNTHSTAKE_MAX_EPOCH",
        description="Upper bound of the epoch counter",
        validator=lambda x: isinstance(x, int) and 0 < x <= MAX_EPOCH,
    ))


@dataclass
class ObservabilityConfig:
    """Configuration for Observability."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="SYNTHSTAKE_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="SYNTHSTAKE_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))


@dataclass
class AuditConfig:
    """Configuration for the audit trail."""
    enabled: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="SYNTHSTAKE_AUDIT_ENABLED",
        description="Record a hash-chained audit event per operation",
    ))


@dataclass
class SynthStakeConfig:
    """
    Root configuration for SynthStake.

    Aggregates all component configurations and provides
    export functionality.
    """
    staking: StakingConfig = field(default_factory=StakingConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                return obj.get()
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton that manages configuration lifecycle.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config = SynthStakeConfig()
        self._config_paths: List[Path] = []
        self._watchers: List[Callable[[SynthStakeConfig], None]] = []
        self._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Discard the singleton (used by tests and the CLI)."""
        with cls._lock:
            cls._instance = None

    @property
    def config(self) -> SynthStakeConfig:
        """Get the current configuration."""
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration root must be a mapping: {path}")
            self._apply_dict(data)
        if path not in self._config_paths:
            self._config_paths.append(path)

    def load_defaults(self) -> None:
        """Load default configuration files if they exist."""
        default_paths = [
            Path("synthstake.yaml"),
            Path("config") / "synthstake.yaml",
            Path.home() / ".synthstake" / "config.yaml",
        ]

        # Later files override earlier ones

        for path in default_paths:
            if path.exists():
                self.load_from_file(path)

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary values to configuration."""
        def apply_to_config(config_obj: Any, values: Dict[str, Any], prefix: str) -> None:
            for key, value in values.items():
                path = f"{prefix}.{key}" if prefix else key
                if not hasattr(config_obj, key):
                    raise ConfigError(f"Unknown config key: {path}")
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                    apply_to_config(attr, value, path)
                else:
                    raise ConfigError(f"Invalid config section: {path}")

        apply_to_config(self._config, data, "")

    def _resolve(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            if not hasattr(obj, part):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: manager.set("staking.unstake_delay_epochs", 14)
        """
        attr = self._resolve(path)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        attr.set(value)

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: manager.get("staking.epoch_duration_minutes")
        """
        obj = self._resolve(path)
        if isinstance(obj, ConfigValue):
            return obj.get()
        if hasattr(obj, "__dataclass_fields__"):
            return {k: getattr(obj, k).get() for k in obj.__dataclass_fields__}
        return obj

    def watch(self, callback: Callable[[SynthStakeConfig], None]) -> None:
        """Register a callback for configuration reloads."""
        self._watchers.append(callback)

    def reload(self) -> None:
        """Reload configuration from all loaded files."""
        for path in list(self._config_paths):
            if path.exists():
                self.load_from_file(path)

        for watcher in self._watchers:
            watcher(self._config)

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        errors.append(f"{path}: validation failed for value {value}")
                except ConfigError as e:
                    errors.append(f"{path}: {e}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors

    def export_schema(self) -> Dict[str, Any]:
        """Export configuration schema for documentation."""
        schema: Dict[str, Any] = {"properties": {}}

        def extract_schema(obj: Any, properties: Dict[str, Any]) -> None:
            if isinstance(obj, ConfigValue):
                properties["type"] = type(obj.default).__name__
                properties["default"] = str(obj.default)
                properties["description"] = obj.description
                if obj.env_var:
                    properties["env_var"] = obj.env_var
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    properties[field_name] = {}
                    extract_schema(getattr(obj, field_name), properties[field_name])

        extract_schema(self._config, schema["properties"])
        return schema


def get_config() -> SynthStakeConfig:
    """Get the current SynthStake configuration."""
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    """Get the configuration manager instance."""
    return ConfigManager()
