"""Language adapter registry.

Adapters are stateless, so one instance per language is shared.
"""

from typing import Optional

from ..errors import UnsupportedLanguageError
from ..models import Language
from .base import LanguageAdapter
from .go import GoAdapter
from .java import JavaAdapter
from .python import PythonAdapter

_ADAPTERS: dict[Language, LanguageAdapter] = {
    Language.PYTHON: PythonAdapter(),
    Language.GO: GoAdapter(),
    Language.JAVA: JavaAdapter(),
}


def _as_language(language) -> Optional[Language]:
    if isinstance(language, Language):
        return language
    try:
        return Language(language)
    except ValueError:
        return None


def adapter_for(language) -> Optional[LanguageAdapter]:
    """Adapter for a Language (or its name), None if unsupported."""
    resolved = _as_language(language)
    return _ADAPTERS.get(resolved) if resolved is not None else None


def get_adapter(language) -> LanguageAdapter:
    """Like adapter_for, but raises UnsupportedLanguageError."""
    adapter = adapter_for(language)
    if adapter is None:
        raise UnsupportedLanguageError(getattr(language, "value", language))
    return adapter


__all__ = [
    "LanguageAdapter",
    "PythonAdapter",
    "GoAdapter",
    "JavaAdapter",
    "adapter_for",
    "get_adapter",
]
