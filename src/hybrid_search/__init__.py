"""Hybrid keyword + semantic search and ranking engine."""

from .__version__ import __version__

__all__ = ["__version__"]
