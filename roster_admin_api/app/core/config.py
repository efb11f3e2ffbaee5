"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from environment
variables.  Defaults are provided for all fields so the API can be
started without any configuration for local development.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Roster Admin API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    # Path or connection string for the SQLite database.  If a relative
    # path is provided, it will be resolved relative to the package root
    # by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "roster.db")

    # IANA timezone name used to decide where a "day" starts for the
    # activity filters (e.g. ``Asia/Ho_Chi_Minh``).  Empty means the
    # system local timezone.
    timezone: str = os.getenv("ROSTER_TIMEZONE", "")

    # Preset ordering used when a request does not name one.
    default_preset_sort: str = os.getenv("DEFAULT_PRESET_SORT", "NAME_ASC")

    # Load the roster from the database when the application starts.
    refresh_on_startup: bool = os.getenv("REFRESH_ON_STARTUP", "true").lower() in {"1", "true", "yes"}


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# should be set before importing this module.
settings = Settings()
