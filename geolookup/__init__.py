"""Geospatial lookup caching and nearby-place synthesis."""

__version__ = "1.0.0"
