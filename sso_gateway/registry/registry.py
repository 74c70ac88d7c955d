"""
App Registry
============
Exact-match allow-list of client applications and their redirect targets.

Redirect URLs and origins are compared as plain strings. There is no prefix,
pattern or normalization step: every legitimate return URL must be listed.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol

import structlog

from .models import AppConfig

logger = structlog.get_logger(__name__)


DEFAULT_APPS: Dict[str, dict] = {
    "app1": {
        "name": "Application 1",
        "allowedRedirectUrls": [
            "https://app1.company.com/auth/callback",
            "http://localhost:3001/auth/callback",
        ],
        "allowedOrigins": ["https://app1.company.com", "http://localhost:3001"],
        # Development key; registry files must give every app its own
        "handoffSecret": "app1-development-handoff-key",
    },
}


class AppRegistry(Protocol):
    """Read-only lookup of registered applications."""

    def lookup(self, app_id: str) -> Optional[AppConfig]:
        ...

    def is_allowed_redirect(self, app_id: str, url: str) -> bool:
        ...

    def is_allowed_origin(self, app_id: str, origin: str) -> bool:
        ...


class StaticAppRegistry:
    """In-process registry built once at startup."""

    def __init__(self, apps: Iterable[AppConfig]):
        self._apps: Dict[str, AppConfig] = {app.app_id: app for app in apps}

    def __len__(self) -> int:
        return len(self._apps)

    def __contains__(self, app_id: str) -> bool:
        return app_id in self._apps

    def lookup(self, app_id: str) -> Optional[AppConfig]:
        if not app_id:
            return None
        return self._apps.get(app_id)

    def is_allowed_redirect(self, app_id: str, url: str) -> bool:
        app = self.lookup(app_id)
        if app is None:
            return False
        return url in app.allowed_redirect_urls

    def is_allowed_origin(self, app_id: str, origin: str) -> bool:
        app = self.lookup(app_id)
        if app is None:
            return False
        return origin in app.allowed_origins

    @classmethod
    def from_mapping(cls, data: Dict[str, dict]) -> "StaticAppRegistry":
        return cls(AppConfig.from_dict(app_id, entry) for app_id, entry in data.items())

    @classmethod
    def from_file(cls, path: str) -> "StaticAppRegistry":
        """
        Load a registry from a JSON file shaped like::

            {"app1": {"name": "...", "allowedRedirectUrls": [...],
                      "allowedOrigins": [...], "handoffSecret": "..."}}
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"App registry file {path} must contain a JSON object")
        registry = cls.from_mapping(data)
        for app_id, entry in data.items():
            if not entry.get("handoffSecret"):
                logger.warning("app_without_handoff_secret", app_id=app_id)
        logger.info("app_registry_loaded", path=path, apps=len(registry))
        return registry


def load_registry(apps_file: Optional[str] = None) -> StaticAppRegistry:
    """Load the registry from ``apps_file`` or fall back to the built-in apps."""
    if apps_file:
        return StaticAppRegistry.from_file(apps_file)
    logger.warning("app_registry_defaults", detail="APPS_CONFIG_FILE not set, using built-in development apps")
    return StaticAppRegistry.from_mapping(DEFAULT_APPS)
