"""
ConfigManager: layered game tunables for Valor.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable balance values.
- Back configuration with YAML defaults plus in-process overrides.
- Keep every read synchronous and cheap; resolvers call it on hot paths.

Responsibilities
----------------
- Load and deep-merge every YAML file under the configured directory.
- Overlay runtime overrides (admin tooling, tests) on top of YAML defaults.
- Serve reads that never raise for a missing key; callers pass a default.

Key Design Decisions
--------------------
- YAML is the single source for **defaults**; overrides live in memory only.
- Code always supplies a fallback default, so an absent `config/` directory
  still yields a fully working engine.
- Lazy bootstrap: the first `get()` loads YAML if `initialize()` was not
  called explicitly.

Dependencies
------------
- PyYAML (`yaml.safe_load`) for file parsing.
- `valor.core.config.config.Config` for the default config directory.
- `valor.core.logging.logger.get_logger` for structured logging.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional, Union

import yaml

from valor.core.config.config import Config
from valor.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


# ============================================================================
# Exceptions
# ============================================================================


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


class ConfigInitializationError(ConfigManagerError):
    """Raised when ConfigManager cannot initialize correctly."""


__all__ = ["ConfigManager", "ConfigManagerError", "ConfigInitializationError"]


# ============================================================================
# ConfigManager
# ============================================================================


class ConfigManager:
    """
    Layered game configuration with dot-notation access.

    Features
    --------
    - Hierarchical config access (e.g. ``"combat.pvp.crit_multiplier"``).
    - Deep-merged YAML defaults from every file in the config directory.
    - Runtime overrides that win over YAML until cleared.
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> int:
        """
        Load all YAML config files from ``config_dir`` into `_defaults`.

        Returns the number of files merged. A missing directory is not an
        error: the engine runs on code defaults.
        """
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return 0

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigInitializationError(
                    f"Failed to load YAML config {yaml_file}: {exc}"
                ) from exc

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

        return loaded_count

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Union[str, Path]] = None) -> None:
        """
        Load YAML defaults (idempotent unless a new directory is given).

        Parameters
        ----------
        config_dir:
            Directory to scan. Defaults to ``Config.CONFIG_DIR``.
        """
        target = Path(config_dir) if config_dir is not None else Path(Config.CONFIG_DIR)
        if cls._initialized and cls._config_dir == target:
            return

        cls._defaults = {}
        loaded = cls._load_yaml_configs(target)
        cls._config_dir = target
        cls._initialized = True

        logger.info(
            "ConfigManager initialized",
            extra={
                "config_dir": str(target),
                "yaml_file_count": loaded,
                "top_level_keys": sorted(cls._defaults),
            },
        )

    @classmethod
    def reset(cls) -> None:
        """Drop all loaded state. The next read re-bootstraps from YAML."""
        cls._defaults = {}
        cls._overrides = {}
        cls._initialized = False
        cls._config_dir = None

    # =========================================================================
    # READS
    # =========================================================================

    @staticmethod
    def _resolve(source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Overrides win over YAML defaults; ``default`` is returned when neither
        defines the key.

        Examples
        --------
        >>> ConfigManager.get("auction.duration_hours", 8)
        8
        """
        if not cls._initialized:
            cls.initialize()

        if key in cls._overrides:
            return cls._overrides[key]

        value = cls._resolve(cls._defaults, key)
        if value is _MISSING or value is None:
            return default
        return value

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Return all top-level configuration keys currently loaded."""
        if not cls._initialized:
            cls.initialize()
        return sorted(set(cls._defaults) | {k.split(".")[0] for k in cls._overrides})

    # =========================================================================
    # OVERRIDES
    # =========================================================================

    @classmethod
    def set_override(cls, key: str, value: Any) -> None:
        """Override a single dot-path value in memory."""
        cls._overrides[key] = value
        logger.info(
            "Configuration override set",
            extra={"config_key": key, "config_value": repr(value)},
        )

    @classmethod
    def clear_overrides(cls) -> None:
        cls._overrides = {}
