from __future__ import annotations

import pytest

from installer_core.page import MemoryPage


def test_with_elements_and_navigation_history() -> None:
    page = MemoryPage.with_elements(name="alice")

    assert page.has_element("name")
    assert page.get_value("name") == "alice"
    assert page.location is None

    page.navigate("/config")
    page.navigate("/done")
    assert page.location == "/done"
    assert page.navigations == ["/config", "/done"]


def test_unknown_element_raises_key_error() -> None:
    page = MemoryPage()

    with pytest.raises(KeyError):
        page.get_value("missing")
    with pytest.raises(KeyError):
        page.add_listener("missing", "change", lambda: None)


def test_failing_handler_does_not_block_other_handlers() -> None:
    page = MemoryPage()
    page.add_element("field")
    calls: list[str] = []

    def broken() -> None:
        raise RuntimeError("boom")

    page.add_listener("field", "change", broken)
    page.add_listener("field", "change", lambda: calls.append(page.get_value("field")))

    page.change("field", "new")

    assert calls == ["new"]
    assert page.listener_count("field", "change") == 2
