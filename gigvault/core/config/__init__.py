"""
GigVault configuration subsystem.

- `Config`: static, environment-driven settings (database, logging).
- `ConfigManager`: dynamic economy values from YAML with runtime overrides.
"""

from gigvault.core.config.config import Config, Environment
from gigvault.core.config.manager import ConfigManager, ConfigManagerError

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigManagerError",
]
