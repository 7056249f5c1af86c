"""
Configuration module for the Archer Service Controller.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ArcherConfig:
    """Archer API configuration."""

    endpoint: str = ""
    network_id: str = ""
    token: str = field(default="", repr=False)  # Never log the token
    timeout: int = 30

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        endpoint = os.getenv("ARCHER_ENDPOINT", "")
        if not endpoint:
            raise ValueError("ARCHER_ENDPOINT environment variable must be set.")

        network_id = os.getenv("NETWORK_ID", "")
        if not network_id:
            raise ValueError(
                "NETWORK_ID environment variable must be set. "
                "It is the default network for endpoint services."
            )

        return cls(
            endpoint=endpoint,
            network_id=network_id,
            token=os.getenv("OS_AUTH_TOKEN", ""),
            timeout=int(os.getenv("ARCHER_TIMEOUT", "30")),
        )


@dataclass
class ControllerConfig:
    """Controller reconciliation loop configuration."""

    annotation_prefix: str = "cloud.sap"
    reconcile_interval: int = 60  # seconds
    max_concurrent_reconciles: int = 5

    # Exponential backoff configuration
    backoff_base_delay: int = 5  # base delay in seconds
    backoff_max_delay: int = 300  # max delay in seconds
    backoff_jitter_factor: float = 0.1  # ±10% jitter

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            annotation_prefix=os.getenv("ANNOTATION_PREFIX", "cloud.sap"),
            reconcile_interval=int(os.getenv("RECONCILE_INTERVAL", "60")),
            max_concurrent_reconciles=int(os.getenv("MAX_CONCURRENT_RECONCILES", "5")),
            backoff_base_delay=int(os.getenv("BACKOFF_BASE_DELAY", "5")),
            backoff_max_delay=int(os.getenv("BACKOFF_MAX_DELAY", "300")),
            backoff_jitter_factor=float(os.getenv("BACKOFF_JITTER_FACTOR", "0.1")),
        )


@dataclass
class HealthConfig:
    """Health probe server configuration."""

    host: str = "0.0.0.0"
    port: int = 8081
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            host=os.getenv("HEALTH_HOST", "0.0.0.0"),
            port=int(os.getenv("HEALTH_PORT", "8081")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class Config:
    """Main configuration object."""

    archer: ArcherConfig
    controller: ControllerConfig
    health: HealthConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            archer=ArcherConfig.from_env(),
            controller=ControllerConfig.from_env(),
            health=HealthConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            archer=ArcherConfig(),
            controller=ControllerConfig(),
            health=HealthConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
