"""
Configuration management system using Pydantic Settings.
Supports environment-based configuration for the geolookup caching layer.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from typing import Optional, Dict
from enum import Enum


class Environment(str, Enum):
    """Supported deployment environments"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Supported log levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheSettings(BaseSettings):
    """Per-category TTL and capacity policy for the lookup cache"""

    # Time to live, in seconds
    autocomplete_ttl_seconds: int = Field(default=300, ge=1)
    place_details_ttl_seconds: int = Field(default=2700, ge=1)  # a place's identity rarely changes
    geocoding_ttl_seconds: int = Field(default=600, ge=1)
    directions_ttl_seconds: int = Field(default=900, ge=1)
    nearby_search_ttl_seconds: int = Field(default=1800, ge=1)
    distance_matrix_ttl_seconds: int = Field(default=1200, ge=1)

    # Maximum entries per category
    autocomplete_max_entries: int = Field(default=500, ge=1)
    place_details_max_entries: int = Field(default=1000, ge=1)
    geocoding_max_entries: int = Field(default=500, ge=1)
    directions_max_entries: int = Field(default=500, ge=1)
    nearby_search_max_entries: int = Field(default=500, ge=1)
    distance_matrix_max_entries: int = Field(default=500, ge=1)

    # Passive expiry sweep; 0 disables it
    sweep_interval_seconds: int = Field(default=300, ge=0, le=86400)

    model_config = {"env_prefix": "CACHE_"}


class CoalescerSettings(BaseSettings):
    """Debounce and in-flight de-duplication configuration"""

    debounce_window_ms: int = Field(default=300, ge=0, le=10000)

    @property
    def debounce_window_seconds(self) -> float:
        return self.debounce_window_ms / 1000.0

    model_config = {"env_prefix": "COALESCER_"}


class UpstreamSettings(BaseSettings):
    """Mapping provider proxy configuration"""

    base_url: str = Field(default="http://localhost:3000/api")
    api_key: Optional[str] = Field(default=None)
    api_key_header: str = Field(default="Authorization")
    timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    locale: str = Field(default="es")
    country: str = Field(default="co")
    min_query_length: int = Field(default=3, ge=1, le=20)
    autocomplete_max_results: int = Field(default=8, ge=1, le=20)

    @field_validator('locale', 'country', mode='before')
    @classmethod
    def normalize_code(cls, v):
        """Locale and country codes are compared lowercase"""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    model_config = {"env_prefix": "UPSTREAM_"}


class NearbySettings(BaseSettings):
    """Nearby-place synthesis configuration"""

    results_per_phrase: int = Field(default=5, ge=1, le=20)
    max_phrases: int = Field(default=3, ge=1, le=10)
    default_radius_km: float = Field(default=5.0, gt=0)
    max_radius_km: float = Field(default=50.0, gt=0)
    default_limit: int = Field(default=20, ge=1, le=100)
    sentinel_id: str = Field(default="no_selection")
    sentinel_name: str = Field(default="Sin punto de encuentro")

    model_config = {"env_prefix": "NEARBY_"}


class Settings(BaseSettings):
    """Main application settings"""

    # Application Configuration
    app_name: str = Field(default="Geolookup Cache Service")
    app_version: str = Field(default="1.0.0")
    environment: Environment = Field(default=Environment.DEVELOPMENT)
    debug: bool = Field(default=False)

    # Logging Configuration
    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_format: str = Field(default="json")

    # Nested Settings
    cache: CacheSettings = Field(default_factory=CacheSettings)
    coalescer: CoalescerSettings = Field(default_factory=CoalescerSettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    nearby: NearbySettings = Field(default_factory=NearbySettings)

    @field_validator('environment', mode='before')
    @classmethod
    def validate_environment(cls, v):
        """Validate and normalize environment setting"""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @field_validator('log_format', mode='before')
    @classmethod
    def validate_log_format(cls, v):
        if isinstance(v, str) and v.lower() in ("json", "text"):
            return v.lower()
        raise ValueError("log_format must be 'json' or 'text'")

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment == Environment.PRODUCTION

    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment == Environment.DEVELOPMENT

    def describe(self) -> Dict[str, object]:
        """Non-secret summary for startup logs"""
        return {
            "environment": self.environment.value,
            "upstream_base_url": self.upstream.base_url,
            "upstream_timeout_seconds": self.upstream.timeout_seconds,
            "locale": self.upstream.locale,
            "country": self.upstream.country,
            "debounce_window_ms": self.coalescer.debounce_window_ms,
            "sweep_interval_seconds": self.cache.sweep_interval_seconds,
        }

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance"""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment and files"""
    global settings
    settings = Settings()
    return settings
