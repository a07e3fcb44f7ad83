from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import httpx

from installer_core.config import (
    DEFAULT_MIGRATIONS_PATH,
    DEFAULT_MIGRATIONS_TIMEOUT_SECONDS,
    DEFAULT_SUCCESS_PATH,
    InstallerConfig,
)
from installer_core.page import ERROR_ID, Page

logger = logging.getLogger(__name__)

SUCCESS_BODY = "ok"

Sleep = Callable[[float], Awaitable[Any]]


class MigrationOutcome(StrEnum):
    OK = "ok"
    ERROR = "error"


def _response_value(response: httpx.Response) -> Any:
    # Servers answer either `ok` or the JSON string "ok"; both count.
    try:
        return response.json()
    except ValueError:
        return response.text


def interpret_response(response: httpx.Response) -> MigrationOutcome:
    if not response.is_success:
        logger.warning("Migrations endpoint returned HTTP %s", response.status_code)
        return MigrationOutcome.ERROR

    value = _response_value(response)
    if value != SUCCESS_BODY:
        logger.warning("Migrations endpoint did not report ok: %r", response.text[:200])
        return MigrationOutcome.ERROR

    return MigrationOutcome.OK


class MigrationRunner:
    """Fire the one-shot migrations request and react to its outcome.

    The request races a timer; whichever finishes first decides the outcome,
    so `run()` always resolves to exactly one MigrationOutcome.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        path: str = DEFAULT_MIGRATIONS_PATH,
        timeout: float = DEFAULT_MIGRATIONS_TIMEOUT_SECONDS,
        success_path: str = DEFAULT_SUCCESS_PATH,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.path = path
        self.timeout = timeout
        self.success_path = success_path
        self._sleep = sleep

    @classmethod
    def from_config(
        cls, client: httpx.AsyncClient, config: InstallerConfig, *, sleep: Sleep = asyncio.sleep
    ) -> MigrationRunner:
        return cls(
            client,
            path=config.migrations.path,
            timeout=config.migrations.timeout_seconds,
            success_path=config.migrations.success_path,
            sleep=sleep,
        )

    async def _request(self) -> MigrationOutcome:
        try:
            response = await self.client.request(
                "GET",
                self.path,
                content=b"",
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Migrations request failed: %s", e)
            return MigrationOutcome.ERROR
        except Exception:
            logger.exception("Migrations request raised unexpectedly")
            return MigrationOutcome.ERROR
        return interpret_response(response)

    async def run(self) -> MigrationOutcome:
        logger.info("Running migrations via %s", self.path)

        request = asyncio.ensure_future(self._request())
        timer = asyncio.ensure_future(self._sleep(self.timeout))
        try:
            done, pending = await asyncio.wait(
                {request, timer}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            request.cancel()
            timer.cancel()
            raise

        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if request in done:
            outcome = request.result()
        else:
            logger.warning("Migrations request timed out after %ss", self.timeout)
            outcome = MigrationOutcome.ERROR

        logger.info("Migrations outcome: %s", outcome)
        return outcome

    def apply(self, page: Page, outcome: MigrationOutcome) -> None:
        if outcome is MigrationOutcome.OK:
            page.navigate(self.success_path)
            return
        show_error(page)

    async def run_and_apply(self, page: Page) -> MigrationOutcome:
        outcome = await self.run()
        self.apply(page, outcome)
        return outcome


def show_error(page: Page) -> None:
    if not page.has_element(ERROR_ID):
        logger.warning("Migrations failed but the page has no #%s element", ERROR_ID)
        return
    page.set_visible(ERROR_ID, True)
