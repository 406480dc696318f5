from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from hrms.infra.db import DATABASE_URL
from hrms.infra.logging import configure_logging, get_logger

logger = get_logger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


def build_alembic_config(database_url: str = DATABASE_URL) -> Config:
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("script_location", str(ALEMBIC_INI.parent / "infra" / "migrations"))
    # env.py reads the target database from here instead of the ini default.
    config.attributes["database_url"] = database_url
    return config


def run_upgrade_head(database_url: str = DATABASE_URL) -> None:
    logger.info("upgrading schema to head")
    command.upgrade(build_alembic_config(database_url), "head")


if __name__ == "__main__":
    configure_logging()
    run_upgrade_head()
