"""Bounded polling for live, interaction-ready elements.

Pages render asynchronously relative to the script driving them, so an
element is looked up repeatedly until it is in the required state or the
deadline passes.  Every attempt queries the session again; no element
handle is reused between attempts.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from .errors import ElementNotFound

if TYPE_CHECKING:  # pragma: no cover - only used for type hints
    from .resolver import ResolvedLocator
    from .session import Element, Session

DEFAULT_POLL = 0.1

StateCheck = Callable[["Element"], bool]


def _visible(element: "Element") -> bool:
    return bool(element.is_displayed())


def _clickable(element: "Element") -> bool:
    return bool(element.is_displayed()) and bool(element.is_enabled())


def _present(element: "Element") -> bool:
    return True


STATES: Dict[str, StateCheck] = {
    "visible": _visible,
    "clickable": _clickable,
    "present": _present,
}


def _state_check(state: str) -> StateCheck:
    try:
        return STATES[state]
    except KeyError:
        raise ValueError(f"Unknown element state: {state!r}") from None


def _attempt(
    session: "Session", expr: str, check: StateCheck
) -> Tuple[Optional["Element"], Optional[BaseException]]:
    """Run one lookup.  Session errors count as "not ready yet"."""
    try:
        element = session.find_element(expr)
        if element is not None and check(element):
            return element, None
        return None, None
    except Exception as exc:
        return None, exc


def _not_found(
    expr: str,
    timeout: float,
    resolved: Optional["ResolvedLocator"],
    last_exc: Optional[BaseException],
) -> ElementNotFound:
    detail = f"not ready within {timeout:g}s"
    if last_exc is not None:
        detail += f", last error: {last_exc}"
    return ElementNotFound(expr, resolved, detail)


def acquire(
    session: "Session",
    expr: str,
    timeout: float,
    state: str = "visible",
    *,
    poll: float = DEFAULT_POLL,
    resolved: Optional["ResolvedLocator"] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Any] = time.sleep,
) -> "Element":
    """Return the element matching ``expr`` once it reaches ``state``.

    ``timeout`` and ``poll`` are in seconds.  At least one attempt is made
    even when ``timeout`` is zero.

    Raises
    ------
    ElementNotFound
        If the deadline passes first.  The last error raised by the session,
        if any, is chained as the cause.
    """

    check = _state_check(state)
    deadline = clock() + timeout
    last_exc: Optional[BaseException] = None
    while True:
        element, exc = _attempt(session, expr, check)
        if element is not None:
            return element
        if exc is not None:
            last_exc = exc
        remaining = deadline - clock()
        if remaining <= 0:
            break
        sleep(min(poll, remaining))
    raise _not_found(expr, timeout, resolved, last_exc) from last_exc


async def acquire_async(
    session: "Session",
    expr: str,
    timeout: float,
    state: str = "visible",
    *,
    poll: float = DEFAULT_POLL,
    resolved: Optional["ResolvedLocator"] = None,
    clock: Callable[[], float] = time.monotonic,
) -> "Element":
    """Coroutine version of :func:`acquire`.

    The event loop is released between attempts; a session call that is
    already running is never interrupted.
    """

    check = _state_check(state)
    deadline = clock() + timeout
    last_exc: Optional[BaseException] = None
    while True:
        element, exc = _attempt(session, expr, check)
        if element is not None:
            return element
        if exc is not None:
            last_exc = exc
        remaining = deadline - clock()
        if remaining <= 0:
            break
        await asyncio.sleep(min(poll, remaining))
    raise _not_found(expr, timeout, resolved, last_exc) from last_exc


def find_now(
    session: "Session", expr: str, resolved: Optional["ResolvedLocator"] = None
) -> "Element":
    """Look ``expr`` up once, without waiting for it to appear."""
    try:
        element = session.find_element(expr)
    except Exception as exc:
        raise ElementNotFound(expr, resolved, str(exc)) from exc
    if element is None:
        raise ElementNotFound(expr, resolved)
    return element


__all__ = ["acquire", "acquire_async", "find_now", "STATES", "DEFAULT_POLL"]
