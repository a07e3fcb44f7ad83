from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

import idna

from installer_core.page import (
    ADMIN_EMAIL_ID,
    ENDPOINT_URL_ID,
    INSTANCE_EMAIL_ID,
    NOTIFY_EMAIL_ID,
    Page,
)

logger = logging.getLogger(__name__)


class MalformedEndpointURL(ValueError):
    """The endpoint URL field does not hold a usable absolute URL."""


@dataclass(frozen=True)
class DerivedField:
    element_id: str
    local_part: str

    def default_for(self, host: str) -> str:
        return f"{self.local_part}@{host}"


DERIVED_FIELDS: tuple[DerivedField, ...] = (
    DerivedField(INSTANCE_EMAIL_ID, "admin"),
    DerivedField(ADMIN_EMAIL_ID, "admin"),
    DerivedField(NOTIFY_EMAIL_ID, "no-reply"),
)


def parse_endpoint_host(raw: str) -> str:
    """Return the hostname of an endpoint URL, lower-cased and in ASCII.

    Scheme, credentials, port and path are discarded. Internationalized
    hosts come back IDNA-encoded (UTS #46 mapping). Raises
    MalformedEndpointURL when the value has no scheme or host, an invalid
    port, or a host IDNA rejects.
    """

    text = (raw or "").strip()
    try:
        parts = urlsplit(text)
        # Accessing .port validates it (numeric, 0..65535).
        parts.port  # noqa: B018
    except ValueError as e:
        raise MalformedEndpointURL(f"Invalid endpoint URL: {text!r}") from e

    host = parts.hostname
    if not parts.scheme or not host:
        raise MalformedEndpointURL(f"Endpoint URL needs a scheme and host: {text!r}")
    if any(ch.isspace() for ch in host):
        raise MalformedEndpointURL(f"Invalid endpoint host: {host!r}")

    if ":" in host:
        return f"[{host}]"
    if not host.isascii():
        try:
            host = idna.encode(host, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise MalformedEndpointURL(f"Invalid endpoint host: {host!r}") from e
    return host


class FieldDeriver:
    """Fill empty contact email fields with defaults based on the endpoint host."""

    def __init__(self, fields: tuple[DerivedField, ...] = DERIVED_FIELDS) -> None:
        self.fields = fields

    def attach(self, page: Page) -> bool:
        if not page.has_element(ENDPOINT_URL_ID):
            return False
        page.add_listener(ENDPOINT_URL_ID, "change", lambda: self.on_change(page))
        return True

    def on_change(self, page: Page) -> None:
        try:
            written = self.derive(page)
        except MalformedEndpointURL as e:
            logger.debug("Skipping email defaults: %s", e)
            return
        if written:
            logger.info("Filled default emails: %s", ", ".join(sorted(written)))

    def derive(self, page: Page) -> dict[str, str]:
        # Parse before any write so a bad URL never leaves partial results.
        host = parse_endpoint_host(page.get_value(ENDPOINT_URL_ID))

        written: dict[str, str] = {}
        for f in self.fields:
            if not page.has_element(f.element_id):
                continue
            if page.get_value(f.element_id) != "":
                continue
            value = f.default_for(host)
            page.set_value(f.element_id, value)
            written[f.element_id] = value
        return written
