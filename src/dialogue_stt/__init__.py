"""Chunked audio capture-to-transcript pipeline for dialogue sessions."""

__version__ = "0.1.0"
