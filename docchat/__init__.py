"""Streaming chat assistant core for the document converter."""

__version__ = "0.1.0"
