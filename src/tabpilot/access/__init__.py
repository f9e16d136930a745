"""
Host access policy: which sites the assistant is allowed to act on.
"""

from tabpilot.access.manager import HostAccessManager
from tabpilot.access.matcher import extract_hostname, is_allowed
from tabpilot.access.models import AccessDecision, HostAccessConfig, HostAccessMode

__all__ = [
    "AccessDecision",
    "HostAccessConfig",
    "HostAccessManager",
    "HostAccessMode",
    "extract_hostname",
    "is_allowed",
]
