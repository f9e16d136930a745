"""
Host access policy matching.

Decides whether the assistant may act on a URL given a HostAccessConfig.
Entries match the host itself or any subdomain of it; a leading "*."
is accepted and means the same thing. Comparison is case-insensitive.
"""

from typing import Optional, Union
from urllib.parse import urlsplit

from tabpilot.access.models import AccessDecision, HostAccessConfig, HostAccessMode


def extract_hostname(url: str) -> Optional[str]:
    """
    Extract the lowercased hostname from a URL.

    Args:
        url: Absolute URL

    Returns:
        Hostname, or None if the URL cannot be parsed or has no host
    """
    try:
        hostname = urlsplit(url).hostname
    except (ValueError, TypeError, AttributeError):
        return None
    return hostname.lower() if hostname else None


def host_matches(hostname: str, entry: str) -> bool:
    """Check a lowercased hostname against a single list entry."""
    pattern = entry.strip().lower()
    if pattern.startswith("*."):
        pattern = pattern[2:]
    if not pattern:
        return False
    return hostname == pattern or hostname.endswith("." + pattern)


def is_allowed(url: str, config: Union[HostAccessConfig, dict]) -> AccessDecision:
    """
    Check whether a URL is allowed by a host access policy.

    Args:
        url: URL the assistant wants to act on
        config: Policy to apply (a HostAccessConfig or its raw dict form)

    Returns:
        AccessDecision with a reason when access is denied
    """
    hostname = extract_hostname(url)
    if not hostname:
        return AccessDecision(allowed=False, reason="Invalid URL")

    if isinstance(config, dict):
        mode = config.get("mode")
        whitelist = config.get("whitelist") or []
        blocklist = config.get("blocklist") or []
    else:
        mode, whitelist, blocklist = config.mode, config.whitelist, config.blocklist

    try:
        mode = HostAccessMode(mode)
    except ValueError:
        return AccessDecision(allowed=False, reason="Invalid configuration mode")

    if mode is HostAccessMode.INCLUDE_ALL:
        return AccessDecision(allowed=True)

    if mode is HostAccessMode.WHITELIST:
        if any(host_matches(hostname, entry) for entry in whitelist):
            return AccessDecision(allowed=True)
        return AccessDecision(allowed=False, reason=f"Host {hostname} is not in whitelist")

    if any(host_matches(hostname, entry) for entry in blocklist):
        return AccessDecision(allowed=False, reason=f"Host {hostname} is in blocklist")
    return AccessDecision(allowed=True)
