"""Configuration for the command gateway.

Loading precedence:
1. Environment variables (highest)
2. Project config (.commandgate/config.json)
3. User profile (~/.commandgate/profiles/<name>.json)
4. Defaults (lowest)
"""

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from commandgate.core.exceptions import ConfigurationError

# camelCase option names accepted in JSON configs
CAMEL_CASE_ALIASES = {
    "requireConfirmation": "require_confirmation",
    "enableSandbox": "enable_sandbox",
    "securityThreshold": "security_threshold",
    "executionTimeout": "execution_timeout_ms",
    "maxConcurrentExecutions": "max_concurrent_executions",
    "confirmationTimeout": "confirmation_timeout_ms",
}


@dataclass(frozen=True)
class GatewayConfig:
    """Gating and supervision settings.

    Attributes:
        require_confirmation: Ask the decision source for categories that demand it
        enable_sandbox: Advisory sandbox mode; rejects categories not allowed in a sandbox
        security_threshold: Minimum security score (0-100) required to execute
        execution_timeout_ms: Wall-clock limit for a child process
        max_concurrent_executions: Largest batch accepted by execute_batch
        confirmation_timeout_ms: How long to wait for a confirmation decision
    """

    require_confirmation: bool = True
    enable_sandbox: bool = False
    security_threshold: int = 70
    execution_timeout_ms: int = 30_000
    max_concurrent_executions: int = 5
    confirmation_timeout_ms: int = 10_000

    def __post_init__(self) -> None:
        if not 0 <= self.security_threshold <= 100:
            raise ConfigurationError(
                f"security_threshold must be between 0 and 100, got {self.security_threshold}",
                key="security_threshold",
            )
        if self.execution_timeout_ms < 1:
            raise ConfigurationError(
                f"execution_timeout_ms must be >= 1, got {self.execution_timeout_ms}",
                key="execution_timeout_ms",
            )
        if self.max_concurrent_executions < 1:
            raise ConfigurationError(
                f"max_concurrent_executions must be >= 1, got {self.max_concurrent_executions}",
                key="max_concurrent_executions",
            )
        if self.confirmation_timeout_ms < 1:
            raise ConfigurationError(
                f"confirmation_timeout_ms must be >= 1, got {self.confirmation_timeout_ms}",
                key="confirmation_timeout_ms",
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GatewayConfig":
        """Create config from dictionary, ignoring unknown keys."""
        return cls(**_known_fields(normalize_keys(data)))

    def merged(self, **changes: Any) -> "GatewayConfig":
        """Return a validated copy with ``changes`` applied.

        Raises:
            ConfigurationError: On unknown option names or invalid values
        """
        changes = normalize_keys(changes)
        unknown = set(changes) - _field_names()
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration option(s): {', '.join(sorted(unknown))}",
                key=sorted(unknown)[0],
            )
        return GatewayConfig(**{**self.to_dict(), **changes})


def _field_names() -> set[str]:
    return {f.name for f in fields(GatewayConfig)}


def _known_fields(data: dict[str, Any]) -> dict[str, Any]:
    valid_keys = _field_names()
    return {k: v for k, v in data.items() if k in valid_keys}


def normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Translate camelCase option names to field names."""
    return {CAMEL_CASE_ALIASES.get(k, k): v for k, v in data.items()}


def _read_json(path: Path, label: str) -> dict[str, Any]:
    try:
        with path.open() as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {label}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to load {label}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{label} must contain a JSON object")
    return _known_fields(normalize_keys(data))


def load_user_config(profile_name: str = "default") -> dict[str, Any]:
    """Load options from ~/.commandgate/profiles/<name>.json (empty if absent).

    Raises:
        ConfigurationError: If profile file is invalid JSON
    """
    profile_path = Path.home() / ".commandgate" / "profiles" / f"{profile_name}.json"
    if not profile_path.exists():
        return {}
    return _read_json(profile_path, f"profile {profile_name}")


def load_project_config(project_root: Path | None = None) -> dict[str, Any]:
    """Load options from <project_root>/.commandgate/config.json (empty if absent).

    Raises:
        ConfigurationError: If config file is invalid JSON
    """
    if project_root is None:
        project_root = Path.cwd()

    config_path = project_root / ".commandgate" / "config.json"
    if not config_path.exists():
        return {}
    return _read_json(config_path, "project config")


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"Invalid {name}: {value}", key=name)


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {name}: {value}", key=name) from e


def load_env_overrides() -> dict[str, Any]:
    """Load configuration overrides from environment variables.

    Supported environment variables:
    - COMMANDGATE_REQUIRE_CONFIRMATION
    - COMMANDGATE_ENABLE_SANDBOX
    - COMMANDGATE_SECURITY_THRESHOLD
    - COMMANDGATE_EXECUTION_TIMEOUT_MS
    - COMMANDGATE_MAX_CONCURRENT
    - COMMANDGATE_CONFIRMATION_TIMEOUT_MS

    Returns:
        Dictionary of configuration overrides
    """
    overrides: dict[str, Any] = {}

    if value := os.getenv("COMMANDGATE_REQUIRE_CONFIRMATION"):
        overrides["require_confirmation"] = _parse_bool("COMMANDGATE_REQUIRE_CONFIRMATION", value)
    if value := os.getenv("COMMANDGATE_ENABLE_SANDBOX"):
        overrides["enable_sandbox"] = _parse_bool("COMMANDGATE_ENABLE_SANDBOX", value)
    if value := os.getenv("COMMANDGATE_SECURITY_THRESHOLD"):
        overrides["security_threshold"] = _parse_int("COMMANDGATE_SECURITY_THRESHOLD", value)
    if value := os.getenv("COMMANDGATE_EXECUTION_TIMEOUT_MS"):
        overrides["execution_timeout_ms"] = _parse_int("COMMANDGATE_EXECUTION_TIMEOUT_MS", value)
    if value := os.getenv("COMMANDGATE_MAX_CONCURRENT"):
        overrides["max_concurrent_executions"] = _parse_int("COMMANDGATE_MAX_CONCURRENT", value)
    if value := os.getenv("COMMANDGATE_CONFIRMATION_TIMEOUT_MS"):
        overrides["confirmation_timeout_ms"] = _parse_int(
            "COMMANDGATE_CONFIRMATION_TIMEOUT_MS", value
        )

    return overrides


def load_config(profile_name: str = "default", project_root: Path | None = None) -> GatewayConfig:
    """Load and merge all configuration sources.

    Raises:
        ConfigurationError: If any config source is invalid
    """
    merged: dict[str, Any] = {}
    merged.update(load_user_config(profile_name))
    merged.update(load_project_config(project_root))
    merged.update(load_env_overrides())
    return GatewayConfig.from_dict(merged)
