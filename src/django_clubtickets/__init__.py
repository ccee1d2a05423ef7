"""Nightclub ticket cart and checkout settlement for Django."""

__version__ = "0.1.0"
