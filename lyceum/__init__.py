"""Lyceum: philosophy content platform, bulk data transfer engine."""

__version__ = "1.0.0"
