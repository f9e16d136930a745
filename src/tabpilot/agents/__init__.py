"""
AI agents operating on browser tabs.

This package provides:
- Tab organization into named groups (TabOrganizer)
- The inference endpoint client used for classification (InferenceClient)
- The registry of inference providers and their keys (ProviderManager)
"""

from tabpilot.agents.inference import InferenceClient, InferenceError, OpenAIInferenceClient
from tabpilot.agents.models import (
    GroupProposal,
    OrganizeResult,
    Parsed,
    ParseError,
    TabDescriptor,
    UngroupResult,
)
from tabpilot.agents.providers import ProviderManager, get_inference_client
from tabpilot.agents.tab_organizer import TabOrganizer, parse_grouping_response

__all__ = [
    "GroupProposal",
    "InferenceClient",
    "InferenceError",
    "OpenAIInferenceClient",
    "OrganizeResult",
    "Parsed",
    "ParseError",
    "ProviderManager",
    "TabDescriptor",
    "TabOrganizer",
    "UngroupResult",
    "get_inference_client",
    "parse_grouping_response",
]
