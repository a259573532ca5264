"""
CypherDB Configuration Settings

This module contains all configuration constants for the CypherDB server.
Every value can be overridden through environment variables; command line
flags in ``cypherdb.server`` take precedence over both.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    HOST: str = os.environ.get("CYPHERDB_HOST", "0.0.0.0")
    PORT: int = int(os.environ.get("CYPHERDB_PORT", "8080"))

    # Persistence settings
    DATA_FILE: str = os.environ.get("CYPHERDB_DATA_FILE", "cypherdb.json")

    # Shutdown settings
    GRACE_PERIOD: float = float(os.environ.get("CYPHERDB_GRACE_PERIOD", "10"))
    ACCEPT_POLL_INTERVAL: float = float(os.environ.get("CYPHERDB_POLL_INTERVAL", "2"))

    # Connection settings
    READ_BUFFER_SIZE: int = 65536  # Longest line a client may send

    # Logging settings
    DEBUG: bool = os.environ.get("CYPHERDB_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("CYPHERDB_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
