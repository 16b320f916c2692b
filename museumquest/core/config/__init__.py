"""
Configuration subsystem.

- **config.py**: static configuration from environment variables (Config)
- **manager.py**: tunable YAML-backed configuration (ConfigManager)

ConfigManager depends on the logging subsystem, which itself reads Config,
so it is imported from ``museumquest.core.config.manager`` directly.
"""

from museumquest.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
