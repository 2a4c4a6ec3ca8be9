"""Support chat and appointment booking client for a campus mental-health service."""

__version__ = "0.1.0"
