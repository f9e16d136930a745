"""
Data models for AI tab organization.

This module defines the classifier input (one descriptor per tab), the
groups the classifier proposes, the tagged outcome of parsing its reply,
and the results returned by the organizer operations.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class TabDescriptor(BaseModel):
    """What the classifier sees of a tab.

    Attributes:
        id: Platform tab id
        title: Tab title
        url: Tab URL
        hostname: Host of the URL, or "scheme://" if the URL cannot be parsed
    """

    id: Optional[int]
    title: Optional[str] = None
    url: str
    hostname: str


class GroupProposal(BaseModel):
    """One topical group proposed by the classifier.

    Serialized with the classifier's field names (groupName, tabIds).
    """

    group_name: str = Field(alias="groupName", min_length=1)
    tab_ids: list[int] = Field(alias="tabIds")

    model_config = ConfigDict(populate_by_name=True)


class Parsed(BaseModel):
    """Classifier reply that matched the expected shape."""

    groups: list[GroupProposal]


class ParseError(BaseModel):
    """Classifier reply that could not be used."""

    reason: str


ParseResult = Union[Parsed, ParseError]


class OrganizeResult(BaseModel):
    """Result of an organize run.

    Attributes:
        success: Whether the run completed
        grouped_tabs: Number of tabs handed to the classifier
        groups: Number of groups the classifier proposed
        error: Short failure description
    """

    success: bool
    grouped_tabs: Optional[int] = None
    groups: Optional[int] = None
    error: Optional[str] = None


class UngroupResult(BaseModel):
    """Result of ungrouping every group in the current window."""

    success: bool
    groups_ungrouped: Optional[int] = None
    error: Optional[str] = None
