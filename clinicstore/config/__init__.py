"""Configuration for clinicstore."""

from clinicstore.config.settings import StoreSettings, get_settings

__all__ = ["StoreSettings", "get_settings"]
