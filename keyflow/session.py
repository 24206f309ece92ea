"""Browser session capability and its Playwright implementation.

The engine only talks to the browser through :class:`Session` and
:class:`Element`.  Any driver offering these methods can be handed to
:class:`keyflow.engine.KeywordEngine`; :class:`PlaywrightSession` is the one
shipped with the package.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .errors import AlertAbsent, ElementNotFound, SessionUnavailable

log = logging.getLogger(__name__)


class Element(Protocol):
    def is_displayed(self) -> bool: ...

    def is_enabled(self) -> bool: ...

    def click(self) -> None: ...

    def clear(self) -> None: ...

    def send_keys(self, text: str) -> None: ...

    def text(self) -> str: ...

    def select_by_text(self, text: str) -> None: ...


class Session(Protocol):
    def find_element(self, expr: str) -> Optional[Element]: ...

    def switch_frame(self, frame: Optional[str]) -> None: ...

    def accept_alert(self) -> None: ...

    def windows(self) -> List[Any]: ...

    def current_window(self) -> Any: ...

    def close_window(self, handle: Any) -> None: ...

    def hover(self, element: Element) -> None: ...

    def drag_and_drop(self, source: Element, target: Element) -> None: ...

    def set_window_size(self, width: int, height: int) -> None: ...

    def navigate(self, url: str) -> None: ...

    def quit(self) -> None: ...


# ----------------------------------------------------------------------
# Playwright
# ----------------------------------------------------------------------
class PlaywrightElement:
    """:class:`Element` backed by a Playwright ``Locator``."""

    def __init__(self, locator: Any, expression: str) -> None:
        self.locator = locator
        self.expression = expression

    def is_displayed(self) -> bool:
        return self.locator.is_visible()

    def is_enabled(self) -> bool:
        return self.locator.is_enabled()

    def click(self) -> None:
        self.locator.click()

    def clear(self) -> None:
        self.locator.clear()

    def send_keys(self, text: str) -> None:
        # file inputs take a path rather than keystrokes
        if (self.locator.get_attribute("type") or "").lower() == "file":
            self.locator.set_input_files(text)
        else:
            self.locator.press_sequentially(text)

    def text(self) -> str:
        return self.locator.inner_text()

    def select_by_text(self, text: str) -> None:
        tag = str(self.locator.evaluate("el => el.tagName")).lower()
        if tag != "select":
            raise ElementNotFound(self.expression, detail=f"<{tag}> is not a select")
        self.locator.select_option(label=text)


_BARE_FRAME = re.compile(r"^[A-Za-z_][\w\-]*$")


def frame_selector(frame: str) -> str:
    """Return a CSS selector for ``frame``.

    A bare identifier matches the ``id`` or ``name`` of a frame element;
    anything else is used as a selector unchanged.
    """

    if _BARE_FRAME.match(frame):
        return ", ".join(
            f'{tag}[{attr}="{frame}"]'
            for tag in ("iframe", "frame")
            for attr in ("id", "name")
        )
    return frame


class PlaywrightSession:
    """:class:`Session` backed by a Playwright ``Page``.

    A pending dialog blocks the page, and with it the action that opened
    the dialog, until it is handled.  Dialogs are therefore accepted as
    soon as they open and only their messages are queued;
    :meth:`accept_alert` consumes the oldest one.
    """

    def __init__(self, page: Any, *, browser: Any = None, playwright: Any = None) -> None:
        self.page = page
        self.browser = browser
        self.playwright = playwright
        self.frame: Optional[str] = None
        self._dialogs: List[str] = []
        page.on("dialog", self._on_dialog)

    def _on_dialog(self, dialog: Any) -> None:
        self._dialogs.append(dialog.message)
        dialog.accept()
        log.info("Accepted %s dialog: %s", dialog.type, dialog.message)

    def _target(self) -> Any:
        if self.frame:
            return self.page.frame_locator(frame_selector(self.frame))
        return self.page

    def find_element(self, expr: str) -> Optional[PlaywrightElement]:
        locator = self._target().locator(expr)
        if not locator.count():
            return None
        return PlaywrightElement(locator.first, expr)

    def switch_frame(self, frame: Optional[str]) -> None:
        self.frame = frame or None

    def accept_alert(self) -> None:
        if not self._dialogs:
            raise AlertAbsent("No alert present")
        message = self._dialogs.pop(0)
        log.debug("Consumed dialog: %s", message)

    def windows(self) -> List[Any]:
        return list(self.page.context.pages)

    def current_window(self) -> Any:
        return self.page

    def close_window(self, handle: Any) -> None:
        handle.close()

    def hover(self, element: PlaywrightElement) -> None:
        element.locator.hover()

    def drag_and_drop(self, source: PlaywrightElement, target: PlaywrightElement) -> None:
        source.locator.drag_to(target.locator)

    def set_window_size(self, width: int, height: int) -> None:
        self.page.set_viewport_size({"width": width, "height": height})

    def navigate(self, url: str) -> None:
        self.page.goto(url)

    def quit(self) -> None:
        try:
            if self.browser is not None:
                self.browser.close()
            else:
                self.page.close()
        finally:
            if self.playwright is not None:
                self.playwright.stop()


_ENGINES = {
    "chromium": "chromium",
    "chrome": "chromium",
    "firefox": "firefox",
    "ff": "firefox",
    "webkit": "webkit",
    "safari": "webkit",
}


def browser_engine(browser_type: Optional[str]) -> str:
    """Map a user supplied browser name to a Playwright engine name."""
    name = (browser_type or "").strip().lower()
    engine = _ENGINES.get(name)
    if engine is None:
        log.warning("Unknown browser type %r, using chromium", browser_type)
        return "chromium"
    return engine


def launch_session(
    browser_type: Optional[str] = None,
    *,
    headless: bool = True,
    proxy: Optional[str] = None,
    profile: Optional[str] = None,
) -> PlaywrightSession:
    """Start Playwright and open a page in the requested browser.

    ``profile`` names a user data directory; when given the browser is
    launched as a persistent context and its first page is reused.
    """

    engine = browser_engine(browser_type)
    launch_kwargs: Dict[str, Any] = {"headless": headless}
    if proxy:
        launch_kwargs["proxy"] = {"server": proxy}

    pw = sync_playwright().start()
    try:
        launcher = getattr(pw, engine)
        if profile:
            browser = launcher.launch_persistent_context(profile, **launch_kwargs)
            page = browser.pages[0] if browser.pages else browser.new_page()
        else:
            browser = launcher.launch(**launch_kwargs)
            page = browser.new_page()
    except PlaywrightError as exc:
        pw.stop()
        raise SessionUnavailable(f"Failed to launch {engine}: {exc}") from exc
    log.info("Launched %s (headless=%s)", engine, headless)
    return PlaywrightSession(page, browser=browser, playwright=pw)


__all__ = [
    "Element",
    "Session",
    "PlaywrightElement",
    "PlaywrightSession",
    "browser_engine",
    "frame_selector",
    "launch_session",
]
