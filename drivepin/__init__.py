"""Restore drive letters by matching volumes on their durable identifiers."""

from .__version__ import __version__


__all__ = ["__version__"]
