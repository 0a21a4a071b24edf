"""Traced chat-completion tool-calling samples."""

__version__ = "0.1.0"
