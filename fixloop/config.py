"""
Configuration loading and validation for fixloop.

This module handles:
- Loading config.yaml from the project root
- Environment variable resolution (${VAR} syntax)
- Validation of field types and ranges
- Default values for every optional field
- Caching of the loaded configuration
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


@dataclass
class LoopConfig:
    """Verification loop configuration."""
    max_iterations: Optional[int] = None       # Overrides the complexity tier when set
    verification_timeout_ms: int = 30000       # Timeout for one verification run
    cleanup_on_completion: bool = True         # Remove materialized check scripts
    check_command: str = ""                    # Default check (inferred when empty)


@dataclass
class TierConfig:
    """Iteration budget per complexity tier."""
    simple: int = 5
    moderate: int = 8
    complex: int = 12
    multi_strategy: int = 15

    def budget_for(self, tier_name: str) -> int:
        """Get the iteration budget for a tier name."""
        return int(getattr(self, tier_name))


@dataclass
class MemoryConfig:
    """Execution memory configuration."""
    enabled: bool = True
    path: str = ".fixloop/memory/executions.jsonl"
    max_entries: int = 100                     # Rolling history cap
    similarity_threshold: float = 0.5          # Jaccard threshold (exclusive)
    prefer_fewer_iterations: bool = False      # Rank similar successes ascending


@dataclass
class CommandFixerConfig:
    """An external fixer command exposed as a repair strategy."""
    id: str
    command: str
    categories: list[str] = field(default_factory=lambda: ["lint"])
    base_confidence: float = 0.85
    timeout_seconds: int = 120


@dataclass
class StrategiesConfig:
    """Repair strategy configuration."""
    default_strategy: str = "general"          # Fallback when nothing matches
    success_threshold: float = 0.8             # Local success confidence bar
    disabled: list[str] = field(default_factory=list)
    command_fixers: list[CommandFixerConfig] = field(default_factory=list)


@dataclass
class FixLoopConfig:
    """
    Main configuration for fixloop.

    This is the top-level config loaded from config.yaml.
    """
    # Paths
    repo_root: str = "."
    fixloop_dir: str = ".fixloop"

    # Nested configurations
    loop: LoopConfig = field(default_factory=LoopConfig)
    tiers: TierConfig = field(default_factory=TierConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    strategies: StrategiesConfig = field(default_factory=StrategiesConfig)

    def __post_init__(self) -> None:
        """Convert paths to absolute paths based on repo_root."""
        self.repo_root = str(Path(self.repo_root).absolute())

    @property
    def working_directory(self) -> Path:
        """Directory the verification check and fixers run in."""
        return Path(self.repo_root)

    @property
    def fixloop_path(self) -> Path:
        """Absolute path to the .fixloop directory."""
        return Path(self.repo_root) / self.fixloop_dir

    @property
    def logs_path(self) -> Path:
        """Absolute path to logs directory."""
        return self.fixloop_path / "logs"

    @property
    def checks_path(self) -> Path:
        """Absolute path to the directory holding materialized checks."""
        return self.fixloop_path / "checks"

    @property
    def memory_path(self) -> Path:
        """Absolute path to the execution memory file."""
        path = Path(self.memory.path)
        if path.is_absolute():
            return path
        return Path(self.repo_root) / path


# Module-level cache for the loaded configuration
_config_cache: Optional[FixLoopConfig] = None


def _resolve_env_vars(value: Any) -> Any:
    """
    Resolve environment variables in a value.

    Supports ${VAR} syntax for environment variable substitution.
    Returns the original value if it's not a string.
    """
    if isinstance(value, str):
        pattern = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

        def replace(match: re.Match) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigError(f"Environment variable ${{{var_name}}} is not set")
            return env_value

        return pattern.sub(replace, value)

    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]

    return value


def _positive_int(value: Any, name: str) -> int:
    """Validate a strictly positive integer field."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return value


def _unit_float(value: Any, name: str) -> float:
    """Validate a float field in [0, 1]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if not 0.0 <= float(value) <= 1.0:
        raise ConfigError(f"{name} must be between 0 and 1, got {value!r}")
    return float(value)


def _parse_loop_config(data: dict[str, Any]) -> LoopConfig:
    """Parse loop configuration from dict."""
    max_iterations = data.get("max_iterations")
    if max_iterations is not None:
        max_iterations = _positive_int(max_iterations, "loop.max_iterations")
    return LoopConfig(
        max_iterations=max_iterations,
        verification_timeout_ms=_positive_int(
            data.get("verification_timeout_ms", 30000), "loop.verification_timeout_ms"
        ),
        cleanup_on_completion=bool(data.get("cleanup_on_completion", True)),
        check_command=data.get("check_command", "") or "",
    )


def _parse_tier_config(data: dict[str, Any]) -> TierConfig:
    """Parse tier budgets from dict."""
    defaults = TierConfig()
    return TierConfig(
        simple=_positive_int(data.get("simple", defaults.simple), "tiers.simple"),
        moderate=_positive_int(data.get("moderate", defaults.moderate), "tiers.moderate"),
        complex=_positive_int(data.get("complex", defaults.complex), "tiers.complex"),
        multi_strategy=_positive_int(
            data.get("multi_strategy", defaults.multi_strategy), "tiers.multi_strategy"
        ),
    )


def _parse_memory_config(data: dict[str, Any]) -> MemoryConfig:
    """Parse memory configuration from dict."""
    return MemoryConfig(
        enabled=bool(data.get("enabled", True)),
        path=data.get("path", ".fixloop/memory/executions.jsonl"),
        max_entries=_positive_int(data.get("max_entries", 100), "memory.max_entries"),
        similarity_threshold=_unit_float(
            data.get("similarity_threshold", 0.5), "memory.similarity_threshold"
        ),
        prefer_fewer_iterations=bool(data.get("prefer_fewer_iterations", False)),
    )


def _parse_command_fixer(data: dict[str, Any]) -> CommandFixerConfig:
    """Parse one command fixer entry."""
    if not data.get("id"):
        raise ConfigError("strategies.command_fixers[].id is required")
    if not data.get("command"):
        raise ConfigError(f"strategies.command_fixers[{data['id']}].command is required")
    categories = data.get("categories", ["lint"])
    if not isinstance(categories, list) or not categories:
        raise ConfigError(f"strategies.command_fixers[{data['id']}].categories must be a non-empty list")
    return CommandFixerConfig(
        id=data["id"],
        command=data["command"],
        categories=[str(c) for c in categories],
        base_confidence=_unit_float(
            data.get("base_confidence", 0.85), f"strategies.command_fixers[{data['id']}].base_confidence"
        ),
        timeout_seconds=_positive_int(
            data.get("timeout_seconds", 120), f"strategies.command_fixers[{data['id']}].timeout_seconds"
        ),
    )


def _parse_strategies_config(data: dict[str, Any]) -> StrategiesConfig:
    """Parse strategies configuration from dict."""
    return StrategiesConfig(
        default_strategy=data.get("default_strategy", "general"),
        success_threshold=_unit_float(
            data.get("success_threshold", 0.8), "strategies.success_threshold"
        ),
        disabled=list(data.get("disabled", [])),
        command_fixers=[_parse_command_fixer(c) for c in data.get("command_fixers", [])],
    )


def config_from_dict(data: dict[str, Any]) -> FixLoopConfig:
    """
    Build a configuration from an already-parsed mapping.

    Args:
        data: Mapping with the same shape as config.yaml.

    Returns:
        FixLoopConfig: Validated configuration.

    Raises:
        ConfigError: If a field is invalid.
    """
    data = _resolve_env_vars(data)

    return FixLoopConfig(
        repo_root=data.get("repo_root", "."),
        fixloop_dir=data.get("fixloop_dir", ".fixloop"),
        loop=_parse_loop_config(data.get("loop", {}) or {}),
        tiers=_parse_tier_config(data.get("tiers", {}) or {}),
        memory=_parse_memory_config(data.get("memory", {}) or {}),
        strategies=_parse_strategies_config(data.get("strategies", {}) or {}),
    )


def load_config(config_path: Optional[str] = None) -> FixLoopConfig:
    """
    Load configuration from config.yaml.

    Args:
        config_path: Optional path to config file. If not provided,
                     looks for config.yaml in current directory.

    Returns:
        FixLoopConfig: Loaded and validated configuration.

    Raises:
        ConfigError: If config is invalid or cannot be loaded.
    """
    if config_path is None:
        config_path = "config.yaml"

    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, "r") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")

    if not raw_data:
        raise ConfigError("Configuration file is empty")

    if not isinstance(raw_data, dict):
        raise ConfigError("Configuration file must contain a mapping")

    return config_from_dict(raw_data)


def get_config(config_path: Optional[str] = None, force_reload: bool = False) -> FixLoopConfig:
    """
    Get the cached configuration, loading it if necessary.

    Args:
        config_path: Optional path to config file.
        force_reload: If True, reload configuration even if cached.

    Returns:
        FixLoopConfig: The loaded configuration.

    Raises:
        ConfigError: If config is invalid or cannot be loaded.
    """
    global _config_cache

    if _config_cache is None or force_reload:
        _config_cache = load_config(config_path)

    return _config_cache


def clear_config_cache() -> None:
    """Clear the configuration cache. Useful for testing."""
    global _config_cache
    _config_cache = None
