"""Loftwatch - performance and health monitoring for the loft reservation platform."""

__version__ = "0.1.0"
