"""Utility modules for the AI Visibility Engine."""

from .config import Settings, get_settings
from .domain_filter import (
    normalize_domain,
    domain_matches,
    match_any,
    brand_label,
    brand_key,
    is_platform_domain,
    is_profile_platform,
)

__all__ = [
    "Settings",
    "get_settings",
    # Domain handling
    "normalize_domain",
    "domain_matches",
    "match_any",
    "brand_label",
    "brand_key",
    "is_platform_domain",
    "is_profile_platform",
]
