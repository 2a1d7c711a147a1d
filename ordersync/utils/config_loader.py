"""YAML configuration loading for the order sync engine.

A configuration file is picked in this order: the path passed in, the
ORDERSYNC_CONFIG environment variable, config/<APP_ENV>.yaml, then
config/default.yaml. String values may reference environment variables as
${VAR} or ${VAR:-fallback}; ORDERSYNC_* environment variables fill in
settings the file leaves out.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from pydantic import ValidationError

from ordersync.models.config import AppConfig

log = structlog.stdlib.get_logger()

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<fallback>[^}]*))?\}")
_DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class ConfigLoader:
    """Builds an AppConfig from a YAML file and the environment."""

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """
        Args:
            config_dir: Directory holding default.yaml and <APP_ENV>.yaml files
        """
        self.config_dir = Path(config_dir) if config_dir else _DEFAULT_CONFIG_DIR

    def load_config(self, config_path: Optional[str] = None) -> AppConfig:
        """
        Load and validate the configuration.

        Args:
            config_path: Explicit configuration file, or None to look one up

        Returns:
            Validated application configuration

        Raises:
            ConfigurationError: If no file is found, it cannot be parsed,
                                a referenced variable is unset, or validation fails
        """
        path = self.resolve_path(config_path)
        log.info("loading_configuration", config_path=str(path))

        raw = self._read_mapping(path)
        missing: set[str] = set()
        expanded = _expand(raw, missing)
        if missing:
            names = ", ".join(sorted(missing))
            raise ConfigurationError(
                f"Environment variables referenced by {path} are not set: {names}"
            )

        try:
            config = AppConfig(**expanded)
        except ValidationError as e:
            log.error("configuration_validation_failed", config_path=str(path), error=str(e))
            raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

        log.info(
            "configuration_loaded",
            base_url=str(config.remote.base_url),
            store=config.store.type,
            max_remote_workers=config.worker.max_remote_workers,
        )
        return config

    def resolve_path(self, config_path: Optional[str] = None) -> Path:
        """Find the configuration file to load."""
        explicit = config_path or os.getenv("ORDERSYNC_CONFIG")
        if explicit:
            path = Path(explicit)
            if not path.is_file():
                raise ConfigurationError(f"Configuration file not found: {path}")
            return path

        candidates = [self.config_dir / f"{os.getenv('APP_ENV', 'default')}.yaml"]
        candidates.append(self.config_dir / "default.yaml")
        for candidate in candidates:
            if candidate.is_file():
                return candidate

        raise ConfigurationError(
            f"Configuration file not found in {self.config_dir}; "
            "create default.yaml or set ORDERSYNC_CONFIG"
        )

    def validate_config(self, config: AppConfig) -> list[str]:
        """
        Check a loaded configuration for settings that are valid but suspicious.

        Returns:
            Warning messages (empty if none)
        """
        warnings = []

        if config.store.type == "sqlite" and config.store.path == ":memory:":
            warnings.append(
                "store.path is ':memory:'; the order cache will be lost when the process exits"
            )

        if config.remote.base_url.scheme != "https":
            warnings.append(
                f"remote.base_url uses '{config.remote.base_url.scheme}'; "
                "the auth token will be sent unencrypted"
            )

        if config.worker.max_remote_workers > config.remote.page_size:
            warnings.append(
                f"worker.max_remote_workers ({config.worker.max_remote_workers}) exceeds "
                f"remote.page_size ({config.remote.page_size}); extra workers will stay idle"
            )

        retry = config.remote.retry
        if retry.max_retries and retry.base_delay * 2 ** (retry.max_retries - 1) > (
            config.remote.timeout_seconds * 10
        ):
            warnings.append(
                "remote.retry backoff grows past ten request timeouts; "
                "a failing page may stall the sync for a long time"
            )

        if warnings:
            log.warning("configuration_validation_warnings", warnings=warnings)
        return warnings

    @staticmethod
    def _read_mapping(path: Path) -> dict[str, Any]:
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML file {path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping of configuration sections")
        return data


def _expand(value: Any, missing: set[str]) -> Any:
    """Replace ${VAR} references in every string of a parsed YAML tree."""
    if isinstance(value, dict):
        return {key: _expand(item, missing) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand(item, missing) for item in value]
    if not isinstance(value, str):
        return value

    def substitute(match: re.Match) -> str:
        env_value = os.getenv(match["name"])
        if env_value is not None:
            return env_value
        if match["fallback"] is not None:
            return match["fallback"]
        missing.add(match["name"])
        return match.group(0)

    return _ENV_REFERENCE.sub(substitute, value)
