"""Turn ``(namespace, keyword, args)`` into a concrete locator expression."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .bindings import BindingStore
from .errors import InvalidBinding, UnresolvedPlaceholder

log = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\d+)\}")


@dataclass(frozen=True)
class ResolvedLocator:
    """A locator expression together with the binding it came from."""

    expression: str
    namespace: str
    keyword: str

    def __str__(self) -> str:
        return self.expression


def substitute(template: str, args: Sequence[str]) -> Tuple[str, List[int]]:
    """Replace every ``{i}`` in ``template`` by ``args[i]``.

    Returns ``(text, missing)`` where ``missing`` lists placeholder indexes
    that had no argument; those are left untouched in ``text``.  Argument
    values are inserted literally and never re-scanned.
    """

    missing: List[int] = []

    def _sub(match: "re.Match[str]") -> str:
        index = int(match.group(1))
        if index < len(args):
            return str(args[index])
        missing.append(index)
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, template), missing


class LocatorResolver:
    """Resolve keywords against a :class:`BindingStore`."""

    def __init__(self, store: BindingStore, *, debug: bool = False) -> None:
        self.store = store
        self.debug = debug

    def resolve(
        self, namespace: str, keyword: str, args: Sequence[str] = ()
    ) -> ResolvedLocator:
        """Return the locator bound to ``namespace.keyword`` with ``args`` applied.

        Raises
        ------
        InvalidBinding
            If the namespace or keyword is unknown, or the expression is
            blank after substitution.
        UnresolvedPlaceholder
            If the template uses ``{i}`` and fewer than ``i + 1`` arguments
            were given.  The lowest such index is reported.
        """

        bindings = self.store.namespace(namespace)
        if bindings is None:
            log.warning("Binding library doesn't contain the namespace: %s", namespace)
            raise InvalidBinding(namespace, keyword, "namespace")
        template = bindings.get(keyword)
        if template is None:
            log.warning("Namespace %s doesn't contain the keyword: %s", namespace, keyword)
            raise InvalidBinding(namespace, keyword, "keyword")

        expression, missing = substitute(template, args)
        if missing:
            raise UnresolvedPlaceholder(namespace, keyword, min(missing))
        if not expression.strip():
            raise InvalidBinding(namespace, keyword, "empty")
        if self.debug:
            log.info("Locate %s.%s with locator:\n%s", namespace, keyword, expression)
        return ResolvedLocator(expression, namespace, keyword)


__all__ = ["LocatorResolver", "ResolvedLocator", "substitute"]
