"""
ConfigManager: dynamic, dot-notation access to game-balance configuration.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable economy values
  (reward amounts, streak schedule, PvP odds, cooldowns).
- Back configuration with YAML defaults shipped in `gigvault/config/`.
- Allow hot balance changes through in-memory overrides without a redeploy.

Responsibilities
----------------
- Load and deep-merge every YAML file in the config directory.
- Overlay runtime overrides on top of YAML defaults.
- Serve reads from an in-memory cache with simple read metrics.

Key Design Decisions
--------------------
- YAML is the single source for **defaults**; `set()` stores **overrides**.
- Services read values per call (`BaseService.get_config`) so an override
  takes effect on the next request; nothing is captured at construction.
- Reads never raise; a missing key returns the caller's default.

Dependencies
------------
- PyYAML (`yaml.safe_load`) for the default files.
- `gigvault.core.logging.logger.get_logger` for structured logging.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import yaml

from gigvault.core.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


@dataclass
class _ConfigReadMetrics:
    gets: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    fallback_to_defaults: int = 0
    overrides_applied: int = 0
    total_get_time_ms: float = 0.0

    def snapshot(self) -> Dict[str, Any]:
        hit_rate = (self.cache_hits / self.gets * 100.0) if self.gets else 0.0
        avg_ms = (self.total_get_time_ms / self.gets) if self.gets else 0.0
        return {
            "gets": self.gets,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_hit_rate": round(hit_rate, 2),
            "fallback_to_defaults": self.fallback_to_defaults,
            "overrides_applied": self.overrides_applied,
            "avg_get_time_ms": round(avg_ms, 4),
        }


class ConfigManager:
    """
    Dynamic economy configuration with YAML defaults and runtime overrides.

    Examples
    --------
    >>> ConfigManager.initialize()
    >>> ConfigManager.get("checkin.base_reward")
    100
    >>> ConfigManager.set("checkin.base_reward", 150)
    >>> ConfigManager.get("checkin.base_reward")
    150
    """

    _cache: Dict[str, Any] = {}
    _defaults: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Path = DEFAULT_CONFIG_DIR
    _metrics: _ConfigReadMetrics = _ConfigReadMetrics()

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)  # type: ignore[index]
            else:
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls) -> None:
        """
        Recursively load all YAML config files from the config directory.

        Files are merged in sorted path order so composition is deterministic.
        """
        cls._defaults = {}
        config_dir = cls._config_dir

        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(
            list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml"))
        )
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        logger.info(
            "YAML configs loaded",
            extra={
                "yaml_file_count": loaded_count,
                "top_level_keys": len(cls._defaults),
            },
        )

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults and reset the cache to them (idempotent).

        Passing `config_dir` forces a reload from that directory.
        """
        if cls._initialized and config_dir is None:
            return

        if config_dir is not None:
            cls._config_dir = Path(config_dir)

        start = time.perf_counter()
        cls._load_yaml_configs()
        cls._cache = copy.deepcopy(cls._defaults)
        cls._initialized = True

        logger.info(
            "ConfigManager initialized",
            extra={
                "config_dir": str(cls._config_dir),
                "config_count": len(cls._cache),
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )

    @classmethod
    def _get_from_defaults(cls, key: str) -> Any:
        """Traverse default config using dot notation; returns `None` if missing."""
        value: Any = cls._defaults
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return None
            else:
                return None
        return value

    # =========================================================================
    # READ API
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Parameters
        ----------
        key:
            Dot-notation config path (e.g. `"pvp.attack.steal_pct"`).
        default:
            Value to return if the key is not found in cache or defaults.

        Examples
        --------
        >>> ConfigManager.get("rewards.ad_amount", 500)
        500
        """
        start_time = time.perf_counter()
        cls._metrics.gets += 1

        if not cls._initialized:
            logger.warning(
                "ConfigManager accessed before explicit initialization; "
                "loading defaults now"
            )
            cls.initialize()

        try:
            value: Any = cls._cache
            for part in key.split("."):
                value = value.get(part) if isinstance(value, dict) else None
                if value is None:
                    cls._metrics.cache_misses += 1
                    fallback = cls._get_from_defaults(key)
                    if fallback is not None:
                        cls._metrics.fallback_to_defaults += 1
                        return fallback
                    return default

            cls._metrics.cache_hits += 1
            return value
        finally:
            cls._metrics.total_get_time_ms += (time.perf_counter() - start_time) * 1000

    # =========================================================================
    # WRITE API
    # =========================================================================

    @classmethod
    def set(cls, key: str, value: Any, modified_by: str = "system") -> None:
        """
        Override a configuration value in memory.

        Intermediate mappings are created as needed. The YAML defaults are
        left untouched, so `reset_overrides()` restores them.

        Raises
        ------
        ConfigManagerError
            If an intermediate path segment already holds a non-mapping value.
        """
        if not cls._initialized:
            cls.initialize()

        parts = key.split(".")
        node: Dict[str, Any] = cls._cache
        for part in parts[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ConfigManagerError(
                    f"Cannot set '{key}': '{part}' is not a mapping"
                )
            node = child

        old_value = node.get(parts[-1])
        node[parts[-1]] = value
        cls._metrics.overrides_applied += 1

        logger.info(
            "Configuration override applied",
            extra={
                "config_key": key,
                "old_value": old_value,
                "new_value": value,
                "modified_by": modified_by,
            },
        )

    @classmethod
    def reset_overrides(cls) -> None:
        """Drop every runtime override and restore YAML defaults."""
        cls._cache = copy.deepcopy(cls._defaults)
        logger.info("ConfigManager overrides reset")

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        """Return a snapshot of read metrics."""
        return {
            **cls._metrics.snapshot(),
            "initialized": cls._initialized,
            "cached_configs": len(cls._cache),
        }
