"""
Configuration management for npm-version-tree.

Settings come from dataclass defaults, then the first config file found in
the standard locations, then environment variables.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

console = Console(stderr=True)

ENV_PREFIX = "NPM_VERSION_TREE_"
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"


@dataclass
class FetchConfig:
    """Metadata fetching and retry configuration."""

    retry_attempts: int = 3
    # Seconds to wait before each retry; missing entries retry immediately.
    retry_delays: List[float] = field(default_factory=list)


@dataclass
class NetworkConfig:
    """Registry connection configuration."""

    registry_url: str = DEFAULT_REGISTRY_URL
    user_agent: str = "npm-version-tree/1.0.0"
    timeout_seconds: float = 30.0
    rate_limit: float = 20.0


@dataclass
class TreeConfig:
    """Default tree build options."""

    production: bool = False
    max_depth: Optional[int] = None


@dataclass
class SecurityConfig:
    """Input validation limits."""

    max_manifest_size_mb: int = 5

    @property
    def max_manifest_size_bytes(self) -> int:
        return self.max_manifest_size_mb * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "WARNING"


@dataclass
class ComprehensiveConfig:
    """Main configuration containing all subsections."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    tree: TreeConfig = field(default_factory=TreeConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_global_config: Optional[ComprehensiveConfig] = None


_EXPECTED_TYPES = {
    "fetch.retry_attempts": int,
    "fetch.retry_delays": list,
    "network.registry_url": str,
    "network.user_agent": str,
    "network.timeout_seconds": (int, float),
    "network.rate_limit": (int, float),
    "tree.production": bool,
    "tree.max_depth": (int, type(None)),
    "security.max_manifest_size_mb": int,
    "logging.log_level": str,
}


def _check_types(config: ComprehensiveConfig) -> List[str]:
    errors = []
    for dotted, expected in _EXPECTED_TYPES.items():
        section_name, key = dotted.split(".")
        value = getattr(getattr(config, section_name), key)
        if isinstance(value, bool) and expected is not bool:
            errors.append(f"{dotted} has invalid type bool")
        elif not isinstance(value, expected):
            errors.append(f"{dotted} has invalid type {type(value).__name__}")
    if isinstance(config.fetch.retry_delays, list) and not all(
        isinstance(d, (int, float)) and not isinstance(d, bool) for d in config.fetch.retry_delays
    ):
        errors.append("fetch.retry_delays must only contain numbers")
    return errors


def validate_config_values(config: ComprehensiveConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = _check_types(config)
    if errors:
        return errors

    if config.fetch.retry_attempts < 1:
        errors.append("fetch.retry_attempts must be at least 1")
    if any(delay < 0 for delay in config.fetch.retry_delays):
        errors.append("fetch.retry_delays must not contain negative values")

    if not config.network.registry_url.startswith(("http://", "https://")):
        errors.append("network.registry_url must be an http(s) URL")
    if config.network.timeout_seconds <= 0:
        errors.append("network.timeout_seconds must be positive")
    if config.network.rate_limit <= 0:
        errors.append("network.rate_limit must be positive")

    if config.tree.max_depth is not None and config.tree.max_depth < 0:
        errors.append("tree.max_depth must be non-negative")

    if config.security.max_manifest_size_mb <= 0:
        errors.append("security.max_manifest_size_mb must be positive")

    if config.logging.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        errors.append(f"logging.log_level is not a valid level: {config.logging.log_level}")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON or YAML file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"⚠️  Error loading config from {config_path}: {e}", style="yellow")

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".npm-version-tree.json",
        Path.cwd() / ".npm-version-tree.yaml",
        Path.cwd() / ".npm-version-tree.yml",
        Path.home() / ".config" / "npm-version-tree" / "config.json",
        Path.home() / ".config" / "npm-version-tree" / "config.yaml",
        Path.home() / ".npm-version-tree.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def _parse_delays(raw: str) -> List[float]:
    return [float(part) for part in raw.split(",") if part.strip()]


def load_environment_overrides(config: ComprehensiveConfig) -> None:
    """Apply NPM_VERSION_TREE_* environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(ENV_PREFIX + key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_int(key: str) -> Optional[int]:
        try:
            return int(os.environ[ENV_PREFIX + key]) if ENV_PREFIX + key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid integer value for {ENV_PREFIX}{key}, using default", style="yellow")
            return None

    def get_env_float(key: str) -> Optional[float]:
        try:
            return float(os.environ[ENV_PREFIX + key]) if ENV_PREFIX + key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid float value for {ENV_PREFIX}{key}, using default", style="yellow")
            return None

    if registry_url := os.environ.get(ENV_PREFIX + "REGISTRY_URL"):
        config.network.registry_url = registry_url.rstrip("/")
    if (timeout := get_env_float("TIMEOUT")) is not None:
        config.network.timeout_seconds = timeout
    if (rate_limit := get_env_float("RATE_LIMIT")) is not None:
        config.network.rate_limit = rate_limit

    if (retry_attempts := get_env_int("RETRY_ATTEMPTS")) is not None:
        config.fetch.retry_attempts = retry_attempts
    if (raw_delays := os.environ.get(ENV_PREFIX + "RETRY_DELAYS")) is not None:
        try:
            config.fetch.retry_delays = _parse_delays(raw_delays)
        except ValueError:
            console.print(f"⚠️  Invalid value for {ENV_PREFIX}RETRY_DELAYS, using default", style="yellow")

    if (max_depth := get_env_int("MAX_DEPTH")) is not None:
        config.tree.max_depth = max_depth
    config.tree.production = get_env_bool("PRODUCTION", config.tree.production)

    if log_level := os.environ.get(ENV_PREFIX + "LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(config: Any, section_data: Dict[str, Any], section_name: str) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(f"⚠️  Unknown config key in {section_name}: {key}", style="yellow")


def build_config(file_config: Optional[Dict[str, Any]] = None) -> ComprehensiveConfig:
    """Build a configuration from optional file data plus environment overrides."""
    config = ComprehensiveConfig()

    if file_config:
        for section_name in ("fetch", "network", "tree", "security", "logging"):
            section_data = file_config.get(section_name)
            if isinstance(section_data, dict):
                apply_config_section(getattr(config, section_name), section_data, section_name)

    load_environment_overrides(config)
    return config


def load_config() -> ComprehensiveConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    file_config = None
    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)

    config = build_config(file_config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        config = _replace_invalid_sections(config, validation_errors)

    _global_config = config
    return config


def _replace_invalid_sections(
    config: ComprehensiveConfig, validation_errors: List[str]
) -> ComprehensiveConfig:
    defaults = ComprehensiveConfig()
    invalid_sections = {error.split(".", 1)[0] for error in validation_errors}
    for section_name in invalid_sections:
        if hasattr(defaults, section_name):
            setattr(config, section_name, getattr(defaults, section_name))
    return config


def get_config() -> ComprehensiveConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate sample configuration."""
    return json.dumps(ComprehensiveConfig().to_dict(), indent=2)
