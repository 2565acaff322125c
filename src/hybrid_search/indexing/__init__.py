"""Indexing pipeline and upstream event handling."""

from .events import IndexEventHandler
from .pipeline import IndexingPipeline

__all__ = ["IndexEventHandler", "IndexingPipeline"]
