"""
Configuration management for psachecker.
"""

from psachecker.config.checker_config import (
    CheckerConfiguration,
    load_config_from_env,
)

__all__ = [
    "CheckerConfiguration",
    "load_config_from_env",
]
