"""
Configuration Settings for the Spatial Layout Engine
Handles environment variables and configuration management.
"""

from typing import Optional, Dict, Any
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from enum import Enum

from ..core.layout_state import (
    ControllerConfig,
    LayoutSettings,
    LayoutStrategy,
)


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Environment variables are prefixed with 'LAYOUT_' by default.
    For example: LAYOUT_SPACING, LAYOUT_DEFAULT_STRATEGY, etc.
    """

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_prefix="LAYOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    app_name: str = "Spatial Layout Engine"
    app_version: str = "1.0.0"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    # Layout Geometry
    spacing: float = 2.0
    sphere_radius: float = 5.0
    cluster_spacing_ratio: float = 0.5
    cluster_anchor_factor: float = 3.0
    default_strategy: LayoutStrategy = LayoutStrategy.SPHERE

    # Transitions (seconds); 0.02 and 0.015 progress per frame at 60 fps
    grid_transition_seconds: float = 50 / 60
    sphere_transition_seconds: float = (1 / 0.015) / 60
    cluster_transition_seconds: float = 1.0

    # Controller
    camera_min_distance: float = 10.0
    tick_rate: float = 60.0
    strict_recompute: bool = False

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_cors_origins: list[str] = ["*"]

    # Logging Settings
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("spacing", "sphere_radius", "cluster_anchor_factor", "camera_min_distance")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate geometry values are positive."""
        if not v > 0:
            raise ValueError(f"Value must be greater than 0, got {v}")
        return v

    @field_validator("cluster_spacing_ratio")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        """Validate the cluster spacing ratio is in (0, 1]."""
        if not 0 < v <= 1:
            raise ValueError(f"Cluster spacing ratio must be in (0, 1], got {v}")
        return v

    @field_validator("grid_transition_seconds", "sphere_transition_seconds", "cluster_transition_seconds")
    @classmethod
    def validate_duration(cls, v: float) -> float:
        """Validate transition durations are reasonable."""
        if not 0 < v <= 60:
            raise ValueError(f"Transition duration must be in (0, 60] seconds, got {v}")
        return v

    @field_validator("tick_rate")
    @classmethod
    def validate_tick_rate(cls, v: float) -> float:
        """Validate the render loop rate."""
        if not 1 <= v <= 240:
            raise ValueError(f"Tick rate must be between 1 and 240 Hz, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("api_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {v}")
        return v

    def get_layout_settings(self) -> LayoutSettings:
        """Get the geometry settings for the controller."""
        return LayoutSettings(
            spacing=self.spacing,
            sphere_radius=self.sphere_radius,
            cluster_spacing_ratio=self.cluster_spacing_ratio,
            cluster_anchor_factor=self.cluster_anchor_factor,
        )

    def get_controller_config(self) -> ControllerConfig:
        """Get transition and failure-handling configuration."""
        return ControllerConfig(
            transition_durations={
                LayoutStrategy.GRID: self.grid_transition_seconds,
                LayoutStrategy.SPHERE: self.sphere_transition_seconds,
                LayoutStrategy.CLUSTER: self.cluster_transition_seconds,
            },
            camera_min_distance=self.camera_min_distance,
            strict=self.strict_recompute,
        )

    def get_api_params(self) -> Dict[str, Any]:
        """Get server-related parameters."""
        return {
            "host": self.api_host,
            "port": self.api_port,
            "cors_origins": self.api_cors_origins,
        }

    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION

    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment == Environment.DEVELOPMENT


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get global settings instance (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None


def load_settings_from_file(file_path: str) -> Settings:
    """
    Load settings from a specific .env file.

    Args:
        file_path: Path to .env file

    Returns:
        Settings instance
    """
    return Settings(_env_file=file_path)


# Environment-specific configuration presets
DEVELOPMENT_OVERRIDES = {
    "debug": True,
    "log_level": "DEBUG",
    "api_cors_origins": ["*"],
}

PRODUCTION_OVERRIDES = {
    "debug": False,
    "log_level": "INFO",
    "tick_rate": 30.0,
}

TESTING_OVERRIDES = {
    "log_level": "DEBUG",
    "strict_recompute": True,
}


def get_environment_settings(env: Optional[Environment] = None) -> Settings:
    """
    Get settings with environment-specific overrides.

    Args:
        env: Environment to use (defaults to current)

    Returns:
        Settings instance with overrides applied
    """
    base_settings = get_settings()
    env = env or base_settings.environment

    overrides = {}
    if env == Environment.DEVELOPMENT:
        overrides = DEVELOPMENT_OVERRIDES
    elif env == Environment.PRODUCTION:
        overrides = PRODUCTION_OVERRIDES
    elif env == Environment.TESTING:
        overrides = TESTING_OVERRIDES

    # Apply overrides
    settings_dict = base_settings.model_dump()
    settings_dict.update(overrides)
    settings_dict["environment"] = env

    return Settings(**settings_dict)


def get_layout_settings() -> LayoutSettings:
    """Geometry settings from the global configuration."""
    return get_settings().get_layout_settings()


def get_controller_config() -> ControllerConfig:
    """Controller configuration from the global configuration."""
    return get_settings().get_controller_config()
