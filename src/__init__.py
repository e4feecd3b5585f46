# src/__init__.py - v1
"""docbatch: batch job lifecycle manager for LLM-generated source documentation."""

from docbatch.version import __version__

__all__ = ["__version__"]
