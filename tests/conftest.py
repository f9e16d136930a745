"""
Pytest configuration and shared fixtures.
"""

import json
from unittest.mock import AsyncMock

import pytest

from tabpilot.agents.inference import InferenceClient
from tabpilot.browser import BookmarkNode, InMemoryBrowser
from tabpilot.storage import InMemoryStore


@pytest.fixture
def browser():
    """Empty in-memory browser with one window."""
    return InMemoryBrowser()


@pytest.fixture
def store():
    """In-memory key-value store."""
    return InMemoryStore()


@pytest.fixture
def five_tab_browser():
    """Browser with five tabs on a.com, a.com, b.com, c.com, c.com; tab 1 active."""
    browser = InMemoryBrowser(bookmarks=[
        BookmarkNode(id="0", title="root", children=[
            BookmarkNode(id="10", title="Bookmarks Bar", children=[
                BookmarkNode(id="11", title="A home", url="https://a.com/"),
                BookmarkNode(id="12", title="Docs", url="https://docs.example.com/"),
            ]),
        ]),
    ])
    browser.open_tab("https://a.com/one", "A one", tab_id=1, active=True)
    browser.open_tab("https://a.com/two", "A two", tab_id=2)
    browser.open_tab("https://b.com/", "B", tab_id=3)
    browser.open_tab("https://c.com/one", "C one", tab_id=4)
    browser.open_tab("https://c.com/two", "C two", tab_id=5)
    return browser


def make_classifier(groups) -> AsyncMock:
    """Mock inference client replying with the given groups as JSON."""
    classifier = AsyncMock(spec=InferenceClient)
    classifier.classify.return_value = json.dumps({"groups": groups})
    return classifier


@pytest.fixture
def a_and_c_classifier():
    """Classifier grouping the a.com tabs as "A" and the c.com tabs as "C"."""
    return make_classifier([
        {"groupName": "A", "tabIds": [1, 2]},
        {"groupName": "C", "tabIds": [4, 5]},
    ])


@pytest.fixture
def classifier_for():
    """Factory for mock classifiers replying with a given grouping."""
    return make_classifier
