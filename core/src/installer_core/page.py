"""Page capability interface used by the installer bootstrap.

The installer behaviors never touch a concrete browser. They read and write
element values, toggle visibility and navigate through a `Page`, so the same
logic runs against `MemoryPage` in tests and in the headless command line.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Final, Protocol

logger = logging.getLogger(__name__)

ENDPOINT_URL_ID: Final[str] = "config_form_endpoint_url"
INSTANCE_EMAIL_ID: Final[str] = "config_form_instance_email"
ADMIN_EMAIL_ID: Final[str] = "config_form_admin_email"
NOTIFY_EMAIL_ID: Final[str] = "config_form_instance_notify_email"
MIGRATIONS_MARKER_ID: Final[str] = "migrations"
ERROR_ID: Final[str] = "error"

EventHandler = Callable[[], None]


class Page(Protocol):
    def has_element(self, element_id: str) -> bool: ...

    def get_value(self, element_id: str) -> str: ...

    def set_value(self, element_id: str, value: str) -> None: ...

    def set_visible(self, element_id: str, visible: bool) -> None: ...

    def navigate(self, path: str) -> None: ...

    def add_listener(self, element_id: str, event: str, handler: EventHandler) -> None: ...


@dataclass
class Element:
    value: str = ""
    visible: bool = True


@dataclass
class MemoryPage:
    elements: dict[str, Element] = field(default_factory=dict)
    location: str | None = None
    navigations: list[str] = field(default_factory=list)
    _listeners: dict[tuple[str, str], list[EventHandler]] = field(
        default_factory=dict, repr=False
    )

    @classmethod
    def with_elements(cls, **values: str) -> MemoryPage:
        return cls(elements={k: Element(value=v) for k, v in values.items()})

    def add_element(self, element_id: str, value: str = "", *, visible: bool = True) -> Element:
        el = Element(value=value, visible=visible)
        self.elements[element_id] = el
        return el

    def _element(self, element_id: str) -> Element:
        try:
            return self.elements[element_id]
        except KeyError:
            raise KeyError(f"No element with id {element_id!r}") from None

    def has_element(self, element_id: str) -> bool:
        return element_id in self.elements

    def get_value(self, element_id: str) -> str:
        return self._element(element_id).value

    def set_value(self, element_id: str, value: str) -> None:
        self._element(element_id).value = value

    def is_visible(self, element_id: str) -> bool:
        return self._element(element_id).visible

    def set_visible(self, element_id: str, visible: bool) -> None:
        self._element(element_id).visible = visible

    def navigate(self, path: str) -> None:
        self.location = path
        self.navigations.append(path)

    def add_listener(self, element_id: str, event: str, handler: EventHandler) -> None:
        self._element(element_id)
        self._listeners.setdefault((element_id, event), []).append(handler)

    def listener_count(self, element_id: str, event: str) -> int:
        return len(self._listeners.get((element_id, event), []))

    def dispatch(self, element_id: str, event: str) -> None:
        """Run every handler registered for (element_id, event), in order.

        A failing handler is logged; the remaining handlers still run.
        """

        for handler in list(self._listeners.get((element_id, event), [])):
            try:
                handler()
            except Exception:
                logger.exception("Handler for %s on #%s failed", event, element_id)

    def change(self, element_id: str, value: str) -> None:
        self.set_value(element_id, value)
        self.dispatch(element_id, "change")


def installer_form_page(
    *,
    instance_email: str = "",
    admin_email: str = "",
    notify_email: str = "",
    with_migrations: bool = True,
) -> MemoryPage:
    """The installer config page as rendered by the server.

    `with_migrations` mirrors the server rendering the marker only while
    migrations are pending. The error indicator starts hidden.
    """

    page = MemoryPage()
    page.add_element(ENDPOINT_URL_ID)
    page.add_element(INSTANCE_EMAIL_ID, instance_email)
    page.add_element(ADMIN_EMAIL_ID, admin_email)
    page.add_element(NOTIFY_EMAIL_ID, notify_email)
    if with_migrations:
        page.add_element(MIGRATIONS_MARKER_ID)
    page.add_element(ERROR_ID, visible=False)
    return page
