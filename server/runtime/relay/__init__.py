"""Ephemeral Chat Relay - in-memory group chat over server-sent events."""

__version__ = "1.0.0"
