"""
Configuration package for the geolookup caching layer.
"""

from .settings import (
    Settings,
    Environment,
    LogLevel,
    CacheSettings,
    CoalescerSettings,
    UpstreamSettings,
    NearbySettings,
    settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "Settings",
    "Environment",
    "LogLevel",
    "CacheSettings",
    "CoalescerSettings",
    "UpstreamSettings",
    "NearbySettings",
    "settings",
    "get_settings",
    "reload_settings",
]
