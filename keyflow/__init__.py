"""Keyword driven browser automation core."""

from .bindings import BindingStore, BindingWatcher, shared_store
from .resolver import LocatorResolver, ResolvedLocator
from .acquire import acquire, acquire_async, find_now
from .engine import KeywordEngine, SessionContext
from .config import Settings, load_settings
from .errors import (
    AlertAbsent,
    BindingError,
    ElementNotFound,
    InvalidBinding,
    KeyflowError,
    SessionUnavailable,
    UnresolvedPlaceholder,
)

__all__ = [
    "BindingStore",
    "BindingWatcher",
    "shared_store",
    "LocatorResolver",
    "ResolvedLocator",
    "acquire",
    "acquire_async",
    "find_now",
    "KeywordEngine",
    "SessionContext",
    "Settings",
    "load_settings",
    "AlertAbsent",
    "BindingError",
    "ElementNotFound",
    "InvalidBinding",
    "KeyflowError",
    "SessionUnavailable",
    "UnresolvedPlaceholder",
]
