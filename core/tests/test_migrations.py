from __future__ import annotations

import asyncio

import httpx
import pytest

from installer_core.migrations import MigrationOutcome, MigrationRunner
from installer_core.page import ERROR_ID, MemoryPage

BASE_URL = "http://installer.test"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)


def _error_page() -> MemoryPage:
    page = MemoryPage()
    page.add_element(ERROR_ID, visible=False)
    return page


async def _run(handler, **kwargs) -> MigrationOutcome:
    async with _client(handler) as client:
        return await MigrationRunner(client, **kwargs).run()


def test_request_shape() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="ok")

    outcome = asyncio.run(_run(handler))

    assert outcome is MigrationOutcome.OK
    assert len(seen) == 1
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/run_migrations"
    assert request.headers["content-type"] == "application/json"
    assert request.content == b""


@pytest.mark.parametrize("body", ["ok", '"ok"'])
def test_ok_body_is_success(body: str) -> None:
    outcome = asyncio.run(_run(lambda request: httpx.Response(200, text=body)))
    assert outcome is MigrationOutcome.OK


@pytest.mark.parametrize("body", ["fail", "", '{"error": "boom"}', "OK", '"fail"'])
def test_other_bodies_are_failures(body: str) -> None:
    outcome = asyncio.run(_run(lambda request: httpx.Response(200, text=body)))
    assert outcome is MigrationOutcome.ERROR


def test_error_status_is_failure_even_with_ok_body() -> None:
    outcome = asyncio.run(_run(lambda request: httpx.Response(500, text="ok")))
    assert outcome is MigrationOutcome.ERROR


def test_transport_error_is_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert asyncio.run(_run(handler)) is MigrationOutcome.ERROR


def test_timeout_with_fake_clock_is_failure() -> None:
    slept: list[float] = []

    async def scenario() -> tuple[MigrationOutcome, bool]:
        in_flight = asyncio.Event()
        never = asyncio.Event()
        cancelled = False

        async def fake_sleep(seconds: float) -> None:
            # The clock "expires" as soon as the request is in flight.
            slept.append(seconds)
            await in_flight.wait()

        async def hanging(request: httpx.Request) -> httpx.Response:
            nonlocal cancelled
            in_flight.set()
            try:
                await never.wait()
            except asyncio.CancelledError:
                cancelled = True
                raise
            return httpx.Response(200, text="ok")

        async with _client(hanging) as client:
            outcome = await MigrationRunner(client, sleep=fake_sleep).run()
        return outcome, cancelled

    outcome, cancelled = asyncio.run(scenario())

    assert outcome is MigrationOutcome.ERROR
    assert slept == [20.0]
    assert cancelled is True


def test_apply_navigates_on_success() -> None:
    page = _error_page()
    runner = MigrationRunner(httpx.AsyncClient(base_url=BASE_URL))

    runner.apply(page, MigrationOutcome.OK)

    assert page.location == "/config"
    assert page.is_visible(ERROR_ID) is False


def test_apply_reveals_error_on_failure() -> None:
    page = _error_page()
    runner = MigrationRunner(httpx.AsyncClient(base_url=BASE_URL))

    runner.apply(page, MigrationOutcome.ERROR)

    assert page.location is None
    assert page.is_visible(ERROR_ID) is True


def test_apply_failure_without_error_element_does_not_raise() -> None:
    page = MemoryPage()
    runner = MigrationRunner(httpx.AsyncClient(base_url=BASE_URL))

    runner.apply(page, MigrationOutcome.ERROR)

    assert page.location is None
