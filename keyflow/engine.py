"""Keyword driven browser actions.

:class:`KeywordEngine` is what scripts talk to.  Every action follows the
same steps: resolve the keyword in the active namespace, wait for the
element, act on it through the session, then pause for the settle delay so
client-side code on the page can react before the next action::

    engine = KeywordEngine()
    engine.navigate("https://example.com/login")
    engine.namespace("login")
    engine.fill("user_box", "alice")
    engine.click("submit_btn", "go")
    engine.close()

One engine drives one session and is not meant to be shared between
threads.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from .acquire import acquire, find_now
from .bindings import BindingSource, BindingStore, shared_store
from .config import (
    DEFAULT_BROWSER,
    DEFAULT_NAMESPACE,
    DEFAULT_SETTLE_MS,
    DEFAULT_TIMEOUT,
    Settings,
    load_settings,
)
from .errors import AlertAbsent, SessionUnavailable
from .logging import log_action
from .resolver import LocatorResolver, ResolvedLocator
from .session import Element, Session, launch_session

log = logging.getLogger(__name__)

SessionProvider = Callable[[str], Session]


@dataclass
class SessionContext:
    """Mutable per-engine state.

    ``timeout`` is in seconds and ``settle_ms`` in milliseconds.  ``frame``
    is ``None`` while the top level document is active.
    """

    namespace: str = DEFAULT_NAMESPACE
    timeout: float = DEFAULT_TIMEOUT
    settle_ms: int = DEFAULT_SETTLE_MS
    frame: Optional[str] = None
    browser: str = DEFAULT_BROWSER
    window_size: Optional[Tuple[int, int]] = None


class KeywordEngine:
    """Run browser actions against keywords instead of raw locators.

    Parameters
    ----------
    session:
        An already running browser session.  When omitted one is requested
        from ``provider``.
    store:
        Binding store to resolve keywords with.  Defaults to the process
        wide store loaded from ``settings.path_dir``.
    settings:
        Runtime settings; defaults to :func:`keyflow.config.load_settings`.
    provider:
        Callable returning a new session for a browser type.  Used at start
        up and by :meth:`browser`.  Defaults to Playwright.
    sleep, clock:
        Time functions, replaceable for tests.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        store: Optional[BindingStore] = None,
        *,
        settings: Optional[Settings] = None,
        provider: Optional[SessionProvider] = None,
        sleep: Callable[[float], Any] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or load_settings()
        self.store = store if store is not None else shared_store(self.settings)
        self.resolver = LocatorResolver(self.store, debug=self.settings.debug)
        self.provider = provider or self._launch
        self.state = SessionContext(
            timeout=self.settings.timeout,
            settle_ms=self.settings.settle_ms,
            browser=self.settings.browser,
        )
        self._sleep = sleep
        self._clock = clock
        self._session: Optional[Session] = session
        if self._session is None:
            self._session = self.provider(self.state.browser)

    def _launch(self, browser_type: str) -> Session:
        return launch_session(
            browser_type,
            headless=self.settings.headless,
            proxy=self.settings.proxy,
            profile=self.settings.profile,
        )

    @property
    def session(self) -> Optional[Session]:
        """The browser session currently driven, ``None`` once closed."""
        return self._session

    def _require_session(self) -> Session:
        if self._session is None:
            raise SessionUnavailable("Engine is closed")
        return self._session

    # ------------------------------------------------------------------
    # Internals shared by actions
    # ------------------------------------------------------------------
    def _resolve(self, keyword: str, args: Tuple[Any, ...]) -> ResolvedLocator:
        return self.resolver.resolve(
            self.state.namespace, keyword, [str(a) for a in args]
        )

    def _acquire(self, resolved: ResolvedLocator) -> Element:
        return acquire(
            self._require_session(),
            resolved.expression,
            self.state.timeout,
            poll=self.settings.poll_ms / 1000.0,
            resolved=resolved,
            clock=self._clock,
            sleep=self._sleep,
        )

    def _settle(self) -> None:
        if self.state.settle_ms > 0:
            self._sleep(self.state.settle_ms / 1000.0)

    @contextmanager
    def _record(
        self, action: str, keyword: Optional[str] = None, **fields: Any
    ) -> Iterator[Dict[str, Any]]:
        """Write one action log record whether the action succeeds or not.

        The body may add fields (``locator`` in particular) to the yielded
        dictionary.
        """

        info: Dict[str, Any] = dict(fields)
        start = time.time()

        def _write(result: str, **more: Any) -> None:
            duration = (time.time() - start) * 1000.0
            locator = info.pop("locator", None)
            log_action(
                self.settings.run_dir,
                action,
                keyword,
                duration,
                result,
                namespace=self.state.namespace if keyword else None,
                locator=locator,
                **info,
                **more,
            )

        try:
            yield info
        except Exception as exc:
            _write("error", error=str(exc))
            raise
        _write("ok")

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def click(self, keyword: str, *args: Any) -> "KeywordEngine":
        """Click the element bound to ``keyword``."""
        with self._record("click", keyword) as info:
            resolved = self._resolve(keyword, args)
            info["locator"] = resolved.expression
            self._acquire(resolved).click()
        self._settle()
        return self

    def fill(
        self, keyword: str, value: str, *args: Any, secret: bool = False
    ) -> "KeywordEngine":
        """Replace the content of a text field with ``value``.

        With ``secret`` the value is kept out of the action log.
        """
        redact = ["value"] if secret else None
        with self._record("fill", keyword, value=value, redact=redact) as info:
            resolved = self._resolve(keyword, args)
            info["locator"] = resolved.expression
            element = self._acquire(resolved)
            element.clear()
            element.send_keys(value)
        self._settle()
        return self

    def select(self, keyword: str, text: str, *args: Any) -> "KeywordEngine":
        """Choose the option whose visible text is ``text``."""
        with self._record("select", keyword, option=text) as info:
            resolved = self._resolve(keyword, args)
            info["locator"] = resolved.expression
            self._acquire(resolved).select_by_text(text)
        self._settle()
        return self

    def get_text(self, keyword: str, *args: Any) -> str:
        """Return the rendered text of the element."""
        with self._record("get_text", keyword) as info:
            resolved = self._resolve(keyword, args)
            info["locator"] = resolved.expression
            return self._acquire(resolved).text()

    def upload(
        self, keyword: str, file_path: Union[str, Path], *args: Any
    ) -> "KeywordEngine":
        """Hand ``file_path`` to a file input.

        File inputs are often hidden, so the element is looked up once
        without waiting for it to become visible.
        """
        path = os.fspath(file_path)
        with self._record("upload", keyword, file=path) as info:
            resolved = self._resolve(keyword, args)
            info["locator"] = resolved.expression
            session = self._require_session()
            find_now(session, resolved.expression, resolved).send_keys(path)
        self._settle()
        return self

    def mouseover(self, keyword: str, *args: Any) -> "KeywordEngine":
        """Move the mouse over the element."""
        with self._record("mouseover", keyword) as info:
            resolved = self._resolve(keyword, args)
            info["locator"] = resolved.expression
            element = self._acquire(resolved)
            self._require_session().hover(element)
        self._settle()
        return self

    def drag_and_drop(self, source: str, target: str) -> "KeywordEngine":
        """Drag the ``source`` element onto the ``target`` element."""
        with self._record("drag_and_drop", source, target=target) as info:
            src = self._resolve(source, ())
            dest = self._resolve(target, ())
            info["locator"] = src.expression
            info["target_locator"] = dest.expression
            src_el = self._acquire(src)
            dest_el = self._acquire(dest)
            self._require_session().drag_and_drop(src_el, dest_el)
        self._settle()
        return self

    def should(self, keyword: str, condition: str, *args: Any) -> bool:
        """Check the element's current state without waiting.

        ``condition`` is ``"display"`` (or ``"show"``) or ``"enable"``; any
        other value gives ``False``.  A missing element raises
        :class:`~keyflow.errors.ElementNotFound` whatever the condition.
        """
        with self._record("should", keyword, condition=condition) as info:
            resolved = self._resolve(keyword, args)
            info["locator"] = resolved.expression
            element = find_now(self._require_session(), resolved.expression, resolved)
            cond = (condition or "").strip().lower()
            if cond in ("display", "show"):
                result = bool(element.is_displayed())
            elif cond == "enable":
                result = bool(element.is_enabled())
            else:
                result = False
            info["outcome"] = result
            return result

    def navigate(self, url: str) -> "KeywordEngine":
        """Load ``url`` in the current window."""
        with self._record("navigate", url=url):
            self._require_session().navigate(url)
        self._settle()
        return self

    def alert(self) -> "KeywordEngine":
        """Accept the pending browser dialog, if there is one."""
        try:
            self._require_session().accept_alert()
            log.info("Alert accepted")
        except AlertAbsent:
            log.info("No alert present, nothing to accept")
        return self

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def context(self, frame: Optional[str] = None) -> "KeywordEngine":
        """Switch into ``frame``; blank returns to the top level document."""
        target = (frame or "").strip() or None
        self._require_session().switch_frame(target)
        self.state.frame = target
        log.info("switch context to %s", target or "top level document")
        return self

    def namespace(self, name: str) -> "KeywordEngine":
        log.info("switch namespace to %s", name)
        self.state.namespace = name
        return self

    def timeout(self, seconds: float) -> "KeywordEngine":
        """Set how long actions wait for an element, in seconds."""
        log.info("adjust global timeout to %ss", seconds)
        self.state.timeout = float(seconds)
        return self

    def reset_speed(self, ms: int) -> "KeywordEngine":
        """Set the pause after each action, in milliseconds."""
        log.info("adjust settle delay to %dms", ms)
        self.state.settle_ms = max(0, int(ms))
        return self

    def size(self, width: int, height: int) -> "KeywordEngine":
        log.info("adjust browser window size to %d, %d", width, height)
        self._require_session().set_window_size(width, height)
        self.state.window_size = (width, height)
        return self

    def browser(self, browser_type: str) -> "KeywordEngine":
        """Replace the current session with a new one of ``browser_type``."""
        old, self._session = self._session, None
        if old is not None:
            try:
                old.quit()
            except Exception as exc:
                log.warning("Error happened when quitting the old session: %s", exc)
        log.info("switch browser to %s", browser_type)
        session = self.provider(browser_type)
        self._session = session
        self.state.browser = browser_type
        self.state.frame = None
        if self.state.window_size is not None:
            session.set_window_size(*self.state.window_size)
        return self

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------
    def list_namespaces(self) -> List[Tuple[str, int]]:
        return self.store.list_namespaces()

    def refresh(self, source: Optional[BindingSource] = None) -> int:
        """Reload bindings, by default from ``settings.path_dir``."""
        return self.store.refresh(source if source is not None else self.settings.path_dir)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def close(self) -> None:
        """Close secondary windows, then the session.  Never raises."""
        session, self._session = self._session, None
        if session is None:
            return
        try:
            current = session.current_window()
            for handle in session.windows():
                if handle == current:
                    continue
                try:
                    session.close_window(handle)
                except Exception as exc:
                    log.warning("Error happened when closing a window: %s", exc)
        except Exception as exc:
            log.warning("Error happened when listing windows: %s", exc)
        finally:
            try:
                session.quit()
            except Exception as exc:
                log.warning("Error happened when quitting the session: %s", exc)

    def __enter__(self) -> "KeywordEngine":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = ["KeywordEngine", "SessionContext", "SessionProvider"]
