"""Source registry and discovery."""

from typing import Optional, Type

from ..config import RecallConfig
from ..models import ALL_SOURCES
from .base import ConversationSource

# Registry of all known sources
_SOURCES: dict[str, Type[ConversationSource]] = {}


def register_source(source_class: Type[ConversationSource]) -> Type[ConversationSource]:
    """Decorator to register a source class."""
    _SOURCES[source_class.name] = source_class
    return source_class


def get_source(name: str, config: Optional[RecallConfig] = None) -> ConversationSource | None:
    """Get an instance of a source by tag."""
    source_class = _SOURCES.get(name)
    if source_class:
        return source_class(config)
    return None


def get_all_sources(config: Optional[RecallConfig] = None) -> list[ConversationSource]:
    """Get instances of all registered sources, in canonical order."""
    return [_SOURCES[name](config) for name in ALL_SOURCES if name in _SOURCES]


def get_available_sources(config: Optional[RecallConfig] = None) -> list[ConversationSource]:
    """Get instances of all sources whose store or service is reachable."""
    return [s for s in get_all_sources(config) if s.is_available()]


# Import sources to trigger registration
from . import claude_code  # noqa: F401, E402
from . import opencode  # noqa: F401, E402
from . import goose  # noqa: F401, E402
from . import memos  # noqa: F401, E402
