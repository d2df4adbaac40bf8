"""Inbound event handlers."""

from floodguard.handlers.message import MessageHandler, parse_segments

__all__ = ["MessageHandler", "parse_segments"]
