"""Settings loading for the scanner.

Read ``settings.yaml`` (and an optional ``settings.local.yaml`` override)
from the package config directory, load a ``.env`` file into the process
environment, and resolve ``${VAR}`` / ``${VAR:default}`` references.
"""

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

_ENV_REF = re.compile(r"\$\{[^}]+\}")


class ConfigError(Exception):
    """Raise when configuration loading or validation fails."""


class ConfigLoader:
    """Load scanner settings from YAML with environment variable substitution.

    Args:
        config_dir: Directory holding ``settings.yaml``. Defaults to the
            ``polyscout/config`` directory shipped with the package.

    """

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize the loader and read the settings files.

        Args:
            config_dir: Directory containing the settings files.

        """
        load_dotenv()
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)
        self._config: dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Read base settings, merge local overrides, then resolve env vars."""
        settings_file = self.config_dir / "settings.yaml"
        if settings_file.exists():
            with settings_file.open() as f:
                self._config = yaml.safe_load(f) or {}

        local_settings = self.config_dir / "settings.local.yaml"
        if local_settings.exists():
            with local_settings.open() as f:
                local_config = cast("dict[str, Any]", yaml.safe_load(f) or {})
                _deep_merge(self._config, local_config)

        self._config = _substitute_env_vars(self._config)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a value by dot-notation key (e.g. ``monitor.notional``).

        Args:
            key: Dot-separated path into the settings tree.
            default: Value returned when any path segment is missing.

        Returns:
            The configured value or ``default``.

        """
        current: Any = self._config
        for part in key.split("."):
            if not isinstance(current, dict):
                return default
            current = cast("dict[str, Any]", current).get(part)
            if current is None:
                return default
        return current

    def get_section(self, name: str) -> dict[str, Any]:
        """Return a top-level settings section as a dictionary.

        Args:
            name: Section name such as ``report`` or ``scoring``.

        Returns:
            The section mapping, or an empty dict when it is absent.

        Raises:
            ConfigError: If the section exists but is not a mapping.

        """
        result: Any = self.get(name, {})
        if isinstance(result, dict):
            return cast("dict[str, Any]", result)
        msg = f"{name} config must be a dict, got {type(result).__name__}"
        raise ConfigError(msg)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Merge ``override`` into ``base`` in place, recursing into dicts."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], cast("dict[str, Any]", value))
        else:
            base[key] = value


def _substitute_env_vars(config: Any) -> Any:
    """Recursively replace ``${VAR}`` and ``${VAR:default}`` string values.

    Args:
        config: Settings value (dict, list, or scalar).

    Returns:
        The value with environment references resolved.

    Raises:
        ConfigError: If a referenced variable is unset and has no default,
            or a reference is embedded inside a longer string.

    """
    if isinstance(config, dict):
        return {
            k: _substitute_env_vars(v)
            for k, v in cast("dict[str, Any]", config).items()
        }
    if isinstance(config, list):
        return [_substitute_env_vars(item) for item in cast("list[Any]", config)]
    if isinstance(config, str) and config.startswith("${") and config.endswith("}"):
        var_expr = config[2:-1]
        if ":" in var_expr:
            var_name, default = var_expr.split(":", 1)
        else:
            var_name, default = var_expr, None
        value = os.getenv(var_name, default)
        if value is None:
            msg = f"Required environment variable ${{{var_name}}} is not set and has no default"
            raise ConfigError(msg)
        return value
    if isinstance(config, str) and _ENV_REF.search(config):
        msg = f"Unresolved environment variable reference in: {config}"
        raise ConfigError(msg)
    return config


_config: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Return the shared ``ConfigLoader``, creating it on first use.

    Returns:
        The process-wide loader instance.

    """
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ConfigLoader()
    return _config
