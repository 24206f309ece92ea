"""Exception types raised by the keyword engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - only used for type hints
    from .resolver import ResolvedLocator


class KeyflowError(Exception):
    """Base class for all keyflow failures."""


class BindingError(KeyflowError):
    """A keyword could not be turned into a locator expression."""

    def __init__(self, namespace: str, keyword: str, message: str) -> None:
        super().__init__(message)
        self.namespace = namespace
        self.keyword = keyword


class InvalidBinding(BindingError):
    """Unknown namespace or keyword, or a binding that resolves to nothing.

    ``reason`` is one of ``"namespace"``, ``"keyword"`` or ``"empty"``.
    """

    def __init__(self, namespace: str, keyword: str, reason: str = "keyword") -> None:
        if reason == "namespace":
            message = f"Unknown namespace '{namespace}' (keyword '{keyword}')"
        elif reason == "empty":
            message = f"Binding {namespace}.{keyword} resolves to an empty locator"
        else:
            message = f"Namespace '{namespace}' has no keyword '{keyword}'"
        super().__init__(namespace, keyword, message)
        self.reason = reason


class UnresolvedPlaceholder(BindingError):
    """The template references ``{index}`` but no such argument was given."""

    def __init__(self, namespace: str, keyword: str, index: int) -> None:
        super().__init__(
            namespace,
            keyword,
            f"Binding {namespace}.{keyword} needs argument {{{index}}}",
        )
        self.index = index


class ElementNotFound(KeyflowError):
    """No usable element matched ``locator``.

    Raised when acquisition runs out of time or when an immediate lookup
    finds nothing.  The last error reported by the session, if any, is
    chained as ``__cause__``.
    """

    def __init__(
        self,
        locator: str,
        resolved: Optional["ResolvedLocator"] = None,
        detail: str = "",
    ) -> None:
        message = f"Element not found. Locate path is:\n{locator}"
        if resolved is not None:
            message += f"\n(keyword {resolved.namespace}.{resolved.keyword})"
        if detail:
            message += f"\n{detail}"
        super().__init__(message)
        self.locator = locator
        self.resolved = resolved


class AlertAbsent(KeyflowError):
    """No browser dialog is waiting to be handled."""


class SessionUnavailable(KeyflowError):
    """A browser session could not be provisioned."""


__all__ = [
    "KeyflowError",
    "BindingError",
    "InvalidBinding",
    "UnresolvedPlaceholder",
    "ElementNotFound",
    "AlertAbsent",
    "SessionUnavailable",
]
