"""Harvest API descriptions from a running target application."""

__version__ = "0.1.0"
