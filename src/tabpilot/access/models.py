"""
Data models for the host access policy.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class HostAccessMode(str, Enum):
    """How the whitelist and blocklist are applied."""
    INCLUDE_ALL = "include-all"
    WHITELIST = "whitelist"
    BLOCKLIST = "blocklist"


class HostAccessConfig(BaseModel):
    """Allow/deny rule set gating which sites the assistant may act on.

    Attributes:
        mode: Which list (if any) is consulted
        whitelist: Hosts allowed in whitelist mode; "*.domain" entries allowed
        blocklist: Hosts denied in blocklist mode; same entry syntax
    """

    mode: HostAccessMode = HostAccessMode.INCLUDE_ALL
    whitelist: list[str] = Field(default_factory=list)
    blocklist: list[str] = Field(default_factory=list)


class AccessDecision(BaseModel):
    """Outcome of checking a URL against the policy."""

    allowed: bool
    reason: Optional[str] = None
