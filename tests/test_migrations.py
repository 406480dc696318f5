from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, inspect
from sqlmodel import SQLModel

from hrms.domain import models  # noqa: F401
from hrms.infra import migrate


def test_upgrade_head_matches_model_metadata(tmp_path: Path) -> None:
    database_url = f"sqlite:///{tmp_path / 'migrated.db'}"

    migrate.run_upgrade_head(database_url)

    engine = create_engine(database_url)
    inspector = inspect(engine)
    migrated_tables = set(inspector.get_table_names())
    assert "alembic_version" in migrated_tables
    for table in SQLModel.metadata.sorted_tables:
        assert table.name in migrated_tables
        migrated_columns = {column["name"] for column in inspector.get_columns(table.name)}
        assert migrated_columns == set(table.columns.keys()), table.name

    employment_uniques = {item["name"] for item in inspector.get_unique_constraints("employment_states")}
    assert "uq_employment_org_user" in employment_uniques
    engine.dispose()
