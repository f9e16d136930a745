"""Packaged default documents."""
