"""
Process-level settings read from the environment.

``Config`` holds what must be known before anything else starts: where the
database lives, whether presence goes through Redis, how to log and where
the YAML tunables are. Values come from the environment (after ``.env`` is
loaded by python-dotenv) and fall back to development defaults. Game
balance never lives here; ``ConfigManager`` serves that from YAML.

Access is through class attributes, no instances:

    Config.DATABASE_URL
    Config.REDIS_ENABLED

``Config.load()`` runs on import and again from tests that patch the
environment. Integers are range-checked and booleans accept the usual
spellings; a bad value logs a warning and keeps the default.

Environment Variables
---------------------
- DATABASE_URL: SQLAlchemy async URL (default: local SQLite via aiosqlite)
- DATABASE_POOL_SIZE / DATABASE_MAX_OVERFLOW / DATABASE_ECHO
- REDIS_URL, REDIS_ENABLED (presence in Redis instead of process memory)
- ENVIRONMENT: development | testing | staging | production
- LOG_LEVEL, LOG_JSON, LOG_TO_FILE, LOGS_DIR
- VALOR_CONFIG_DIR: directory holding the YAML tunables
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# ============================================================================
# Enums
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Parameters
        ----------
        value:
            Environment string to parse.

        Returns
        -------
        Environment
            Parsed environment enum value, DEVELOPMENT when unknown.
        """
        try:
            return cls(value.lower())
        except ValueError:
            logging.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for the Valor engine.

    Usage
    -----
    >>> db_url = Config.DATABASE_URL
    >>> if Config.is_testing():
    ...     ...
    """

    _defaults_used: Dict[str, Any] = {}

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = "sqlite+aiosqlite:///./valor.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False
    DATABASE_POOL_RECYCLE: int = 3600

    # =========================================================================
    # Redis Configuration
    # =========================================================================

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_ENABLED: bool = False

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_TO_FILE: bool = False

    # =========================================================================
    # Directory Configuration
    # =========================================================================

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with bounds validation.

        Out-of-range or malformed values log a warning and fall back to
        ``default``.
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            cls._defaults_used[key] = default
            return default

        try:
            value = int(raw_value)
        except ValueError:
            logging.warning(
                f"{key}='{raw_value}' is not a valid integer, using default {default}"
            )
            return default

        if min_val is not None and value < min_val:
            logging.warning(
                f"{key}={value} is below minimum {min_val}, using default {default}"
            )
            return default
        if max_val is not None and value > max_val:
            logging.warning(
                f"{key}={value} exceeds maximum {max_val}, using default {default}"
            )
            return default
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            cls._defaults_used[key] = default
            return default

        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False

        logging.warning(
            f"{key}='{raw_value}' is not a valid boolean, using default {default}"
        )
        return default

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        if key not in os.environ:
            cls._defaults_used[key] = default
        return os.getenv(key, default)

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Called on module import; tests call it again after patching the
        environment.
        """
        cls._defaults_used = {}

        cls.DATABASE_URL = cls._safe_str("DATABASE_URL", "sqlite+aiosqlite:///./valor.db")
        cls.DATABASE_POOL_SIZE = cls._safe_int(
            "DATABASE_POOL_SIZE", 20, min_val=1, max_val=200
        )
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int(
            "DATABASE_MAX_OVERFLOW", 10, min_val=0, max_val=200
        )
        cls.DATABASE_ECHO = bool(cls._safe_bool("DATABASE_ECHO", False))
        cls.DATABASE_POOL_RECYCLE = cls._safe_int(
            "DATABASE_POOL_RECYCLE", 3600, min_val=60
        )

        cls.REDIS_URL = cls._safe_str("REDIS_URL", "redis://localhost:6379/0")
        cls.REDIS_SOCKET_TIMEOUT = cls._safe_int(
            "REDIS_SOCKET_TIMEOUT", 5, min_val=1, max_val=60
        )
        cls.REDIS_ENABLED = bool(cls._safe_bool("REDIS_ENABLED", False))

        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "development")
        ).value
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO").upper()
        if cls.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            logging.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)
        cls.LOG_TO_FILE = bool(cls._safe_bool("LOG_TO_FILE", False))

        logs_dir = os.getenv("LOGS_DIR")
        cls.LOGS_DIR = Path(logs_dir) if logs_dir else cls.PROJECT_ROOT / "logs"
        config_dir = os.getenv("VALOR_CONFIG_DIR")
        cls.CONFIG_DIR = Path(config_dir) if config_dir else cls.PROJECT_ROOT / "config"

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment."""
        return cls.ENVIRONMENT == Environment.PRODUCTION.value

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment."""
        return cls.ENVIRONMENT == Environment.DEVELOPMENT.value

    @classmethod
    def is_testing(cls) -> bool:
        """Check if running in testing environment."""
        return cls.ENVIRONMENT == Environment.TESTING.value

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Get non-sensitive configuration summary for debugging."""
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "database_backend": cls.DATABASE_URL.split(":", 1)[0],
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "redis_url_set": bool(cls.REDIS_URL),
            "redis_enabled": cls.REDIS_ENABLED,
            "config_dir": str(cls.CONFIG_DIR),
            "defaults_used": sorted(cls._defaults_used),
        }


Config.load()
