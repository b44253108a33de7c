"""Grok Imagine batch runner: concurrent image generation and editing against the xAI API."""

__version__ = "1.0.0"
