"""Conversation Recall - search past AI coding conversations across assistants."""

__version__ = "0.1.0"
