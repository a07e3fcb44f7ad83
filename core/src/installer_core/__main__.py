from __future__ import annotations

import argparse
import asyncio
import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from installer_core.bootstrap import init_page
from installer_core.config import (
    InstallerConfig,
    config_path_from_env,
    load_installer_config,
    with_overrides,
)
from installer_core.migrations import MigrationOutcome, MigrationRunner
from installer_core.page import (
    ADMIN_EMAIL_ID,
    ENDPOINT_URL_ID,
    ERROR_ID,
    INSTANCE_EMAIL_ID,
    NOTIFY_EMAIL_ID,
    MemoryPage,
    installer_form_page,
)

logger = logging.getLogger(__name__)


def configure_logging(config: InstallerConfig) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=config.logging.max_size_mb * 1024 * 1024,
                backupCount=config.logging.backup_count,
                encoding="utf-8",
            )
        )
    logging.basicConfig(
        level=config.logging.level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


async def run_headless(
    config: InstallerConfig,
    page: MemoryPage,
    *,
    endpoint_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> MigrationOutcome | None:
    async with httpx.AsyncClient(base_url=config.server.base_url, transport=transport) as client:
        runner = MigrationRunner.from_config(client, config)
        boot = init_page(page, runner)
        if endpoint_url is not None and boot.fields_attached:
            page.change(ENDPOINT_URL_ID, endpoint_url)
        return await boot.wait()


def summarize(page: MemoryPage, outcome: MigrationOutcome | None) -> dict[str, Any]:
    return {
        "fields": {
            element_id: page.get_value(element_id)
            for element_id in (ENDPOINT_URL_ID, INSTANCE_EMAIL_ID, ADMIN_EMAIL_ID, NOTIFY_EMAIL_ID)
        },
        "migrations": str(outcome) if outcome is not None else None,
        "location": page.location,
        "error_visible": page.is_visible(ERROR_ID),
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m installer_core",
        description="Run the installer page bootstrap headlessly against an installer server.",
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="JSON config file (default: $INSTALLER_CONFIG)"
    )
    parser.add_argument("--base-url", default=None, help="Installer server base URL")
    parser.add_argument("--endpoint-url", default=None, help="Public endpoint URL to enter")
    parser.add_argument("--instance-email", default="", help="Pre-filled instance email")
    parser.add_argument("--admin-email", default="", help="Pre-filled admin user email")
    parser.add_argument("--notify-email", default="", help="Pre-filled notify email")
    parser.add_argument("--timeout", type=float, default=None, help="Migrations timeout (s)")
    parser.add_argument("--log-file", default=None, help="Also log to this rotating file")
    parser.add_argument(
        "--skip-migrations", action="store_true", help="Render the page without the marker"
    )
    args = parser.parse_args(argv)

    config_path = args.config or config_path_from_env()
    try:
        config = with_overrides(
            load_installer_config(config_path),
            base_url=args.base_url,
            timeout_seconds=args.timeout,
            log_file=args.log_file,
        )
    except FileNotFoundError:
        parser.error(f"config file not found: {config_path}")
    except (ValueError, ValidationError) as e:
        parser.error(f"invalid configuration: {e}")

    configure_logging(config)

    page = installer_form_page(
        instance_email=args.instance_email,
        admin_email=args.admin_email,
        notify_email=args.notify_email,
        with_migrations=not args.skip_migrations,
    )
    outcome = asyncio.run(run_headless(config, page, endpoint_url=args.endpoint_url))

    print(json.dumps(summarize(page, outcome), indent=2, ensure_ascii=False))
    return 1 if outcome is MigrationOutcome.ERROR else 0


if __name__ == "__main__":
    raise SystemExit(main())
