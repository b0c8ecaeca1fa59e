"""Manifest parsing, resource merging, apply helpers and update tools for cluster version management."""

__version__ = "0.1.0"