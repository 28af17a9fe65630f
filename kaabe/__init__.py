"""Kaabe course platform backend: authentication gate and credential lifecycle."""

__version__ = "0.3.0"
