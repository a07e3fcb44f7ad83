from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from installer_core.fields import FieldDeriver
from installer_core.migrations import MigrationOutcome, MigrationRunner
from installer_core.page import MIGRATIONS_MARKER_ID, Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageBootstrap:
    fields_attached: bool
    migration: asyncio.Task[MigrationOutcome] | None = None

    async def wait(self) -> MigrationOutcome | None:
        if self.migration is None:
            return None
        return await self.migration


def init_page(
    page: Page,
    runner: MigrationRunner,
    *,
    deriver: FieldDeriver | None = None,
) -> PageBootstrap:
    """Wire installer behaviors onto a freshly loaded page.

    Call once per page load. When the migrations marker is present this
    schedules the request on the running event loop.
    """

    fields_attached = (deriver or FieldDeriver()).attach(page)

    migration: asyncio.Task[MigrationOutcome] | None = None
    if page.has_element(MIGRATIONS_MARKER_ID):
        migration = asyncio.get_running_loop().create_task(
            runner.run_and_apply(page), name="installer-migrations"
        )
    else:
        logger.debug("No #%s marker; not running migrations", MIGRATIONS_MARKER_ID)

    return PageBootstrap(fields_attached=fields_attached, migration=migration)
