"""Osmora authentication and one-time-code core."""

__version__ = "0.1.0"
