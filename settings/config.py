"""
Centralized configuration management using the Singleton pattern.
This module provides a single point of access to restaurant-wide settings,
eliminating the need for direct database queries from business logic.
"""

from typing import Any, Dict, Optional

from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)


class AppSettings:
    """
    A LAZY singleton class that provides centralized access to global application settings.
    It defers database loading until the first setting is accessed, allowing management
    commands like 'migrate' to run before the database schema is up to date.
    """

    _instance: Optional["AppSettings"] = None
    _initialized: bool = False

    def __new__(cls) -> "AppSettings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def _setup(self):
        if not self._initialized:
            self.load_settings()
            self._initialized = True

    def __getattr__(self, name: str) -> Any:
        """
        Lazily loads settings on first access, then retrieves the attribute.
        """
        if name.startswith("_"):
            raise AttributeError(name)
        if not self._initialized:
            self._setup()

        # After setup, the attribute should exist in the instance's __dict__.
        try:
            return self.__dict__[name]
        except KeyError:
            raise AttributeError(f"'AppSettings' object has no attribute '{name}'")

    def load_settings(self) -> None:
        """
        Load the GlobalSettings row, creating it with defaults on first run.
        """
        # Import here to avoid circular imports
        from .models import GlobalSettings

        try:
            settings_obj = GlobalSettings.load()
        except Exception as e:
            raise ImproperlyConfigured(f"Failed to load settings: {e}")

        self.business_name: str = settings_obj.business_name
        self.business_address: str = settings_obj.business_address
        self.currency: str = settings_obj.currency

    def reload(self) -> None:
        """
        Reload settings from the database.
        Called when GlobalSettings is saved.
        """
        self.load_settings()
        self._initialized = True
        logger.info("AppSettings cache reloaded")

    def invalidate(self) -> None:
        """Drop loaded values; the next attribute access reads the database again."""
        for key in ("business_name", "business_address", "currency"):
            self.__dict__.pop(key, None)
        self._initialized = False

    def get_receipt_header(self) -> Dict[str, str]:
        return {
            "business_name": self.business_name,
            "business_address": self.business_address,
            "currency": self.currency,
        }

    def __repr__(self):
        if not self._initialized:
            return "<AppSettings (not loaded)>"
        return f"<AppSettings business_name={self.business_name!r} currency={self.currency!r}>"


app_settings = AppSettings()
