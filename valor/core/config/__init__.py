"""
Configuration subsystem for Valor.

- **config.py**: static configuration from environment variables (.env)
- **manager.py**: layered YAML tunables with dot-notation access

``ConfigManager`` is imported from ``valor.core.config.manager`` directly;
this package only re-exports the static layer so the logging subsystem can
depend on it without an import cycle.
"""

from valor.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
