"""
Domain Utilities

Shared domain handling used by the context builder and the citation analyzer:
- Normalizing URLs and bare hosts to a comparable domain
- Subdomain matching against owned/competitor domains
- Platform lists (social, directories, developer hubs, app stores, media)

Platforms are NEVER treated as competitors. A citation on a profile platform
only counts as company-operated when the URL carries the company's brand.
"""

import logging
import re
from typing import Iterable, Optional, Set
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


# =============================================================================
# PLATFORM DOMAINS
# =============================================================================

# Social Media Platforms
SOCIAL_MEDIA = {
    "facebook.com", "fb.com",
    "twitter.com", "x.com",
    "instagram.com",
    "linkedin.com",
    "tiktok.com",
    "pinterest.com",
    "reddit.com",
    "threads.net",
    "mastodon.social",
}

# Video Platforms
VIDEO_PLATFORMS = {
    "youtube.com", "youtu.be",
    "vimeo.com",
    "twitch.tv",
}

# Review & Business Directories
REVIEW_DIRECTORIES = {
    "g2.com", "g2crowd.com",
    "capterra.com",
    "trustpilot.com",
    "glassdoor.com",
    "crunchbase.com",
    "producthunt.com",
    "angel.co", "wellfound.com",
    "getapp.com",
    "softwareadvice.com",
}

# Developer Platforms
DEVELOPER_PLATFORMS = {
    "github.com",
    "gitlab.com",
    "npmjs.com",
    "pypi.org",
    "stackshare.io",
}

# App Stores
APP_STORES = {
    "apps.apple.com",
    "play.google.com",
    "chrome.google.com",
}

# News, Media & Reference (third-party coverage)
NEWS_MEDIA = {
    "techcrunch.com", "venturebeat.com", "theverge.com", "wired.com",
    "forbes.com", "bloomberg.com", "reuters.com", "wsj.com",
    "nytimes.com", "washingtonpost.com", "cnn.com", "bbc.com", "bbc.co.uk",
    "hbr.org", "mckinsey.com",
}

REFERENCE_SITES = {
    "wikipedia.org",
    "investopedia.com",
    "medium.com",
    "quora.com",
    "stackoverflow.com",
}

# Platforms where a company can run its own profile/page
PROFILE_PLATFORMS: Set[str] = (
    SOCIAL_MEDIA |
    VIDEO_PLATFORMS |
    REVIEW_DIRECTORIES |
    DEVELOPER_PLATFORMS |
    APP_STORES
)

# Combine all into master set
PLATFORM_DOMAINS: Set[str] = PROFILE_PLATFORMS | NEWS_MEDIA | REFERENCE_SITES

_DOMAIN_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9\-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9\-]*[a-z0-9])?)+$")


def normalize_domain(value: Optional[str]) -> Optional[str]:
    """
    Reduce a URL or host to a lowercase domain without scheme, port or ``www.``.

    Args:
        value: URL ("https://www.acme.dev/blog") or bare host ("acme.dev/blog")

    Returns:
        Normalized domain ("acme.dev"), or None when nothing domain-like is found
    """
    if not value:
        return None

    raw = value.strip().lower()
    if not raw:
        return None

    if "://" not in raw:
        raw = "//" + raw

    try:
        host = urlsplit(raw).hostname
    except ValueError:
        return None

    if not host:
        return None

    host = host.rstrip(".")
    if host.startswith("www."):
        host = host[4:]

    if not _DOMAIN_PATTERN.match(host):
        return None

    return host


def domain_matches(domain: Optional[str], base: Optional[str]) -> bool:
    """True when ``domain`` equals ``base`` or is a subdomain of it."""
    if not domain or not base:
        return False
    return domain == base or domain.endswith("." + base)


def match_any(domain: Optional[str], bases: Iterable[str]) -> Optional[str]:
    """Return the first base domain that ``domain`` falls under, if any."""
    for base in bases:
        if domain_matches(domain, base):
            return base
    return None


def is_platform_domain(domain: Optional[str]) -> bool:
    """
    Check if a domain is a generic platform rather than a business.

    Args:
        domain: Domain name to check (e.g., "linkedin.com", "uk.linkedin.com")

    Returns:
        True if the domain belongs to a known platform
    """
    normalized = normalize_domain(domain)
    if not normalized:
        return False
    return match_any(normalized, PLATFORM_DOMAINS) is not None


def is_profile_platform(domain: Optional[str]) -> bool:
    """True for platforms that host company-run profiles (social, directories, ...)."""
    return match_any(domain, PROFILE_PLATFORMS) is not None


def brand_label(domain: Optional[str]) -> Optional[str]:
    """
    Extract the brand label from a domain ("acme" from "app.acme.dev").

    Uses the label left of the public suffix, with a small allowance for
    two-part country suffixes like "co.uk".
    """
    normalized = normalize_domain(domain)
    if not normalized:
        return None

    parts = normalized.split(".")
    if len(parts) >= 3 and parts[-2] in ("co", "com", "org", "net", "ac", "gov") and len(parts[-1]) == 2:
        return parts[-3]
    if len(parts) >= 2:
        return parts[-2]
    return None


def brand_key(value: Optional[str]) -> str:
    """
    Lowercase a brand spelling and drop separators and punctuation.

    Letters and digits of any script survive, so "Zürich Analytics" gives
    "zürichanalytics" and "メルカリ" stays "メルカリ".
    """
    return re.sub(r"[\W_]", "", (value or "").lower())
