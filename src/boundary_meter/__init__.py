"""Boundary meter provisioning client."""

__version__ = "0.1.0"
