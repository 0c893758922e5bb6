"""UI components for Conversation Recall."""

from .widgets import (
    ExchangeDetailPanel,
    ResultItem,
    build_detail_text,
    build_result_text,
)
from .styles import APP_CSS

__all__ = [
    "ExchangeDetailPanel",
    "ResultItem",
    "build_detail_text",
    "build_result_text",
    "APP_CSS",
]
