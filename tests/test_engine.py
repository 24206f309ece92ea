import json
from dataclasses import asdict

import pytest

from keyflow.bindings import BindingStore
from keyflow.config import Settings
from keyflow.engine import KeywordEngine
from keyflow.errors import (
    ElementNotFound,
    InvalidBinding,
    SessionUnavailable,
    UnresolvedPlaceholder,
)
from tests.mocks.fake_session import FakeClock, FakeElement, FakeSession

BINDINGS = {
    "default": {
        "search_box": "//input[@name='q']",
        "menu": "//li[@id='{0}']",
        "title": "//h1",
        "upload_input": "//input[@type='file']",
        "country": "//select[@id='country']",
        "card": "//div[@id='card']",
        "bin": "//div[@id='bin']",
        "missing_elem": "//div[@id='ghost']",
    },
    "login": {"submit_btn": "//button[@id='{0}']"},
}


def make_engine(session, tmp_path=None, **settings):
    clock = FakeClock()
    engine = KeywordEngine(
        session,
        BindingStore(BINDINGS),
        settings=Settings(run_dir=tmp_path, **settings),
        sleep=clock.sleep,
        clock=clock,
    )
    return engine, clock


def test_click_resolves_args_and_settles():
    btn = FakeElement()
    session = FakeSession({"//button[@id='go']": btn})
    engine, clock = make_engine(session)
    assert engine.namespace("login").click("submit_btn", "go") is engine
    assert btn.calls == [("click",)]
    assert clock.sleeps == [0.5]


def test_fill_clears_before_typing():
    box = FakeElement(text="old")
    session = FakeSession({"//input[@name='q']": box})
    engine, _ = make_engine(session)
    engine.fill("search_box", "hello")
    assert box.calls == [("clear",), ("send_keys", "hello")]
    assert box.text() == "hello"


def test_select_and_get_text():
    select = FakeElement()
    title = FakeElement(text="Welcome")
    session = FakeSession({"//select[@id='country']": select, "//h1": title})
    engine, clock = make_engine(session)
    engine.select("country", "Japan")
    assert select.calls == [("select", "Japan")]
    clock.sleeps.clear()
    assert engine.get_text("title") == "Welcome"
    assert clock.sleeps == []


def test_select_failure_from_session_propagates():
    class NotASelect(FakeElement):
        def select_by_text(self, text):
            raise ElementNotFound("//select[@id='country']", detail="<div> is not a select")

    session = FakeSession({"//select[@id='country']": NotASelect()})
    engine, _ = make_engine(session)
    with pytest.raises(ElementNotFound):
        engine.select("country", "Japan")


def test_upload_skips_visibility_wait(tmp_path):
    hidden = FakeElement(displayed=False)
    session = FakeSession({"//input[@type='file']": hidden})
    engine, clock = make_engine(session)
    doc = tmp_path / "doc.txt"
    engine.upload("upload_input", doc)
    assert hidden.calls == [("send_keys", str(doc))]
    assert session.lookups == ["//input[@type='file']"]
    assert clock.sleeps == [0.5]


def test_mouseover_and_drag_and_drop():
    card, bin_ = FakeElement(), FakeElement()
    menu = FakeElement()
    session = FakeSession(
        {"//div[@id='card']": card, "//div[@id='bin']": bin_, "//li[@id='news']": menu}
    )
    engine, _ = make_engine(session)
    engine.mouseover("menu", "news").drag_and_drop("card", "bin")
    assert session.calls == [("hover", menu), ("drag", card, bin_)]


def test_action_waits_for_late_element():
    title = FakeElement(text="Ready")
    session = FakeSession({"//h1": [None, FakeElement(displayed=False), title]})
    engine, clock = make_engine(session, poll_ms=200)
    assert engine.get_text("title") == "Ready"
    assert clock.sleeps == [0.2, 0.2]


def test_action_times_out_with_configured_timeout():
    session = FakeSession()
    engine, clock = make_engine(session)
    engine.timeout(2)
    with pytest.raises(ElementNotFound) as info:
        engine.click("title")
    assert info.value.locator == "//h1"
    assert info.value.resolved.keyword == "title"
    assert clock.now == pytest.approx(2.0)


def test_binding_errors_surface_unchanged():
    engine, _ = make_engine(FakeSession())
    with pytest.raises(InvalidBinding):
        engine.click("nope")
    with pytest.raises(UnresolvedPlaceholder):
        engine.click("menu")
    engine.namespace("checkout")
    with pytest.raises(InvalidBinding):
        engine.click("search_box")


def test_should_checks_current_state_without_waiting():
    elem = FakeElement(displayed=True, enabled=False)
    session = FakeSession({"//div[@id='card']": elem})
    engine, clock = make_engine(session)
    assert engine.should("card", "display") is True
    assert engine.should("card", "SHOW") is True
    assert engine.should("card", "enable") is False
    assert engine.should("card", "selected") is False
    assert clock.sleeps == []
    assert len(session.lookups) == 4


def test_should_missing_element_raises():
    session = FakeSession()
    engine, clock = make_engine(session)
    with pytest.raises(ElementNotFound):
        engine.should("missing_elem", "display")
    assert session.lookups == ["//div[@id='ghost']"]
    assert clock.sleeps == []


def test_alert_absent_is_not_an_error():
    session = FakeSession(alert=False)
    engine, _ = make_engine(session)
    engine.context("frame1")
    before = asdict(engine.state)
    assert engine.alert() is engine
    assert asdict(engine.state) == before


def test_alert_present_is_accepted():
    session = FakeSession(alert=True)
    engine, _ = make_engine(session)
    engine.alert()
    assert session.calls == [("accept_alert",)]
    assert session.alert_pending is False


def test_context_switches_and_resets_frame():
    session = FakeSession()
    engine, _ = make_engine(session)
    engine.context("editor")
    assert session.frame == "editor"
    assert engine.state.frame == "editor"
    engine.context("  ")
    assert session.frame is None
    assert engine.state.frame is None


def test_configuration_mutators():
    session = FakeSession({"//h1": FakeElement()})
    engine, clock = make_engine(session)
    assert engine.state.namespace == "default"
    assert engine.state.timeout == 10
    engine.namespace("login").timeout(3).reset_speed(0)
    assert (engine.state.namespace, engine.state.timeout, engine.state.settle_ms) == (
        "login",
        3.0,
        0,
    )
    engine.namespace("default").click("title")
    assert clock.sleeps == []
    engine.size(1024, 768)
    assert engine.state.window_size == (1024, 768)
    assert ("size", 1024, 768) in session.calls


def test_browser_replaces_session():
    first = FakeSession()
    second = FakeSession()
    requested = []

    def provider(browser_type):
        requested.append(browser_type)
        return second

    clock = FakeClock()
    engine = KeywordEngine(
        first,
        BindingStore(BINDINGS),
        settings=Settings(),
        provider=provider,
        sleep=clock.sleep,
        clock=clock,
    )
    engine.size(800, 600).context("frame1")
    engine.browser("firefox")
    assert first.quit_called
    assert requested == ["firefox"]
    assert engine.session is second
    assert engine.state.browser == "firefox"
    assert engine.state.frame is None
    assert ("size", 800, 600) in second.calls


def test_engine_requests_session_when_none_given():
    session = FakeSession()
    engine = KeywordEngine(
        store=BindingStore(BINDINGS),
        settings=Settings(browser="webkit"),
        provider=lambda browser_type: session,
    )
    assert engine.session is session
    assert engine.state.browser == "webkit"


def test_close_closes_secondary_windows_then_quits():
    session = FakeSession(windows=("main", "popup", "tab"))
    engine, _ = make_engine(session)
    engine.close()
    assert session.closed_windows == ["popup", "tab"]
    assert session.quit_called
    assert engine.session is None
    engine.close()
    with pytest.raises(SessionUnavailable):
        engine.click("title")


def test_close_never_raises():
    class BrokenSession(FakeSession):
        def close_window(self, handle):
            raise RuntimeError("window gone")

        def quit(self):
            self.quit_called = True
            raise RuntimeError("driver crashed")

    session = BrokenSession(windows=("main", "popup", "tab"))
    engine, _ = make_engine(session)
    engine.close()
    assert session.quit_called

    class NoWindows(FakeSession):
        def windows(self):
            raise RuntimeError("no such session")

    session = NoWindows()
    engine, _ = make_engine(session)
    engine.close()
    assert session.quit_called


def test_context_manager_closes():
    session = FakeSession()
    engine, _ = make_engine(session)
    with engine:
        engine.navigate("https://example.com")
    assert session.calls == [("navigate", "https://example.com")]
    assert session.quit_called


def test_action_log_records(tmp_path):
    box = FakeElement()
    session = FakeSession({"//input[@name='q']": box})
    engine, _ = make_engine(session, tmp_path)
    engine.fill("search_box", "hunter2", secret=True)
    engine.fill("search_box", "mail me at bob@example.com")
    with pytest.raises(ElementNotFound):
        engine.should("missing_elem", "display")

    records = [json.loads(line) for line in (tmp_path / "log.jsonl").read_text().splitlines()]
    assert [r["result"] for r in records] == ["ok", "ok", "error"]
    assert records[0]["value"] == "***"
    assert records[0]["locator"] == "//input[@name='q']"
    assert records[0]["namespace"] == "default"
    assert records[1]["value"] == "mail me at ***"
    assert records[2]["action"] == "should"
    assert "Element not found" in records[2]["error"]


def test_refresh_and_list_namespaces(tmp_path):
    lib = tmp_path / "path"
    lib.mkdir()
    (lib / "home.properties").write_text("logo = //img\n", encoding="utf-8")
    engine, _ = make_engine(FakeSession(), path_dir=lib)
    assert sorted(engine.list_namespaces()) == [("default", 8), ("login", 1)]
    assert engine.refresh() == -8
    assert engine.list_namespaces() == [("home", 1)]
