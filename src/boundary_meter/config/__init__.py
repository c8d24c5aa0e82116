"""Configuration module for the Boundary meter client."""

from boundary_meter.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
