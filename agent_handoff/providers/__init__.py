"""Provider registry and discovery."""

from typing import Type

from ..models import UnifiedSession
from .base import SessionProvider

# Registry of all available providers, in registration (display) order
_PROVIDERS: dict[str, Type[SessionProvider]] = {}


def register_provider(provider_class: Type[SessionProvider]) -> Type[SessionProvider]:
    """Decorator to register a provider class."""
    _PROVIDERS[provider_class.name] = provider_class
    return provider_class


def get_provider(name: str) -> SessionProvider | None:
    """Get an instance of a provider by name."""
    provider_class = _PROVIDERS.get(name)
    if provider_class:
        return provider_class()
    return None


def get_all_providers() -> list[SessionProvider]:
    """Get instances of all registered providers."""
    return [cls() for cls in _PROVIDERS.values()]


def get_available_providers() -> list[SessionProvider]:
    """Get instances of all available (installed) providers."""
    return [p for p in get_all_providers() if p.is_available()]


def discover_all_sessions(source: str | None = None) -> list[UnifiedSession]:
    """Discover sessions from all available providers, newest first."""
    all_sessions: list[UnifiedSession] = []
    for provider in get_available_providers():
        if source and provider.name != source:
            continue
        all_sessions.extend(provider.load_sessions())

    all_sessions.sort(key=lambda s: s.updated_at.timestamp(), reverse=True)
    return all_sessions


def find_session(session_id: str) -> tuple[SessionProvider, UnifiedSession] | None:
    """Find a session by exact id, falling back to a unique id prefix."""
    matches = []
    for session in discover_all_sessions():
        if session.id == session_id:
            return get_provider(session.source), session
        if session.id.startswith(session_id):
            matches.append(session)
    if len(matches) == 1:
        return get_provider(matches[0].source), matches[0]
    return None


# Import providers to trigger registration
from . import claude_code  # noqa: F401, E402
from . import droid  # noqa: F401, E402
from . import amp  # noqa: F401, E402
from . import cline  # noqa: F401, E402
from . import copilot  # noqa: F401, E402
from . import crush  # noqa: F401, E402
from . import antigravity  # noqa: F401, E402
from . import kiro  # noqa: F401, E402
