"""
tabpilot: browser context synchronization and AI tab organization for an
in-browser assistant.
"""

__version__ = "0.1.0"
