"""
AccessLayer Configuration System.

Provides:
- Pydantic-based settings (environment variables, .env files)
- Policy bundle discovery and loading (project and user-level files)
"""

from accesslayer.config.loader import (
    PolicyBundle,
    get_policy_file_path,
    load_policy_bundle,
    load_request,
    parse_policy_bundle,
)
from accesslayer.config.settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Loader
    "PolicyBundle",
    "get_policy_file_path",
    "load_policy_bundle",
    "load_request",
    "parse_policy_bundle",
]
