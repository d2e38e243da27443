#!/usr/bin/env python3
"""Alembic bootstrap for create_all-era databases.

If business tables already exist but alembic_version is missing, stamp
the baseline revision before normal upgrades.
"""

from __future__ import annotations

import logging
import os
import subprocess

from sqlalchemy import inspect

from sitebatch.database import engine

logger = logging.getLogger("alembic_bootstrap")

BASELINE_REVISION = os.getenv("ALEMBIC_BASELINE_REVISION", "001")
BUSINESS_TABLES = ("user_profiles", "asset_items", "inspections")


def needs_baseline_stamp(*, has_alembic_version: bool, has_business_schema: bool) -> bool:
    return has_business_schema and not has_alembic_version


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    inspector = inspect(engine)
    has_alembic_version = inspector.has_table("alembic_version")
    has_business_schema = any(inspector.has_table(table) for table in BUSINESS_TABLES)

    if needs_baseline_stamp(has_alembic_version=has_alembic_version, has_business_schema=has_business_schema):
        logger.info("Existing schema detected without alembic_version. Stamping baseline: %s", BASELINE_REVISION)
        subprocess.run(["alembic", "stamp", BASELINE_REVISION], check=True)
    else:
        logger.info("Alembic bootstrap check: no baseline stamp required")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
