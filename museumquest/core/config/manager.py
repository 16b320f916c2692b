"""
ConfigManager: dot-notation access to tunable engine configuration.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable values such as the
  sync retry budget and the leaderboard fan-out width.
- Back configuration with YAML defaults from the `config/` directory.
- Allow in-process overrides for tests and operator tooling.

Responsibilities
----------------
- Load and deep-merge every YAML file found under `Config.CONFIG_DIR`.
- Serve reads from an in-memory cache, falling back to YAML defaults and
  finally to the caller-supplied default.
- Layer overrides on top of the defaults without mutating them.

Non-Responsibilities
--------------------
- Environment variables and connection settings (handled by Config).
- Validation of individual values (callers clamp what they read).

Key Design Decisions
--------------------
- YAML is the single source for **defaults**; overrides live in memory only.
- Malformed YAML files are logged and skipped, never fatal.
- Reads before an explicit `load()` bootstrap lazily from disk.

Configuration Keys
------------------
- `sync.retry.*`, `sync.hints.retry`
- `leaderboard.cascade.max_concurrency`, `leaderboard.display.top_n`
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import yaml

from museumquest.core.config.config import Config
from museumquest.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManager:
    """
    Tunable configuration with YAML defaults and in-memory overrides.

    Examples
    --------
    >>> ConfigManager.get("sync.retry.max_attempts", 2)
    2
    >>> ConfigManager.set_override("leaderboard.display.top_n", 5)
    >>> ConfigManager.get("leaderboard.display.top_n")
    5
    """

    _defaults: Dict[str, Any] = {}
    _cache: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _loaded: bool = False
    _config_dir: Optional[Path] = None

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
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file),
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
            extra={"config_dir": str(config_dir), "files_loaded": loaded_count},
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def load(cls, config_dir: Optional[Path] = None) -> None:
        """
        (Re)load YAML defaults from ``config_dir`` (default ``Config.CONFIG_DIR``).

        Overrides set with ``set_override`` survive a reload.
        """
        cls._config_dir = Path(config_dir) if config_dir else Path(Config.CONFIG_DIR)
        cls._defaults = {}
        cls._load_yaml_configs(cls._config_dir)
        cls._rebuild_cache()
        cls._loaded = True

    @classmethod
    def reset(cls) -> None:
        """Drop overrides and loaded defaults; the next read reloads from disk."""
        cls._defaults = {}
        cls._cache = {}
        cls._overrides = {}
        cls._loaded = False
        cls._config_dir = None

    @classmethod
    def _rebuild_cache(cls) -> None:
        cache: Dict[str, Any] = copy.deepcopy(cls._defaults)
        for key, value in cls._overrides.items():
            cls._assign(cache, key, value)
        cls._cache = cache

    @staticmethod
    def _assign(target: Dict[str, Any], key: str, value: Any) -> None:
        parts = key.split(".")
        node = target
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    @staticmethod
    def _lookup(source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        return value

    # =========================================================================
    # READ / OVERRIDE API
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Parameters
        ----------
        key:
            Dot-notation config path (e.g. ``"sync.retry.max_attempts"``).
        default:
            Value returned when neither overrides nor YAML define the key.
        """
        if not cls._loaded:
            cls.load(cls._config_dir)

        value = cls._lookup(cls._cache, key)
        if value is _MISSING or value is None:
            fallback = cls._lookup(cls._defaults, key)
            if fallback is not _MISSING and fallback is not None:
                return fallback
            return default
        return value

    @classmethod
    def set_override(cls, key: str, value: Any) -> None:
        """Override ``key`` for the lifetime of the process (or until ``reset``)."""
        if not cls._loaded:
            cls.load(cls._config_dir)
        cls._overrides[key] = value
        cls._rebuild_cache()
        logger.info("Config override applied", extra={"key": key, "value": value})

    @classmethod
    def clear_override(cls, key: str) -> None:
        if cls._overrides.pop(key, _MISSING) is not _MISSING:
            cls._rebuild_cache()

    @classmethod
    def snapshot(cls) -> Dict[str, Any]:
        """Deep copy of the effective configuration tree."""
        if not cls._loaded:
            cls.load(cls._config_dir)
        return copy.deepcopy(cls._cache)
