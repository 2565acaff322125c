"""Version information for the hybrid search engine."""

__version__ = "0.1.0"
