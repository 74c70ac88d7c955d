"""
App Registry
============
Registered client applications and their allow-listed redirect targets.
"""

from .models import AppConfig
from .registry import AppRegistry, StaticAppRegistry, load_registry, DEFAULT_APPS

__all__ = [
    "AppConfig",
    "AppRegistry",
    "StaticAppRegistry",
    "load_registry",
    "DEFAULT_APPS",
]
