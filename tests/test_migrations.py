import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect


def _config(database_url: str) -> Config:
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    return config


def test_migrations_apply(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'migrations.db'}"
    command.upgrade(_config(database_url), "head")

    inspector = inspect(create_engine(database_url, future=True))
    tables = set(inspector.get_table_names())

    assert {
        "transfer_requests",
        "transfer_lines",
        "stock_levels",
        "stock_reservations",
        "transfer_shipments",
        "transfer_receipts",
        "transfer_receipt_lines",
        "transfer_receipt_issues",
        "transfer_activity_log",
        "document_sequences",
        "idempotency_records",
    } <= tables

    columns = {column["name"] for column in inspector.get_columns("transfer_requests")}
    assert {"request_number", "status", "version"} <= columns
    indexes = [index["name"] for index in inspector.get_indexes("transfer_requests")]
    assert indexes.count("ix_transfer_requests_status") == 1


def test_migrations_downgrade_to_base(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'downgrade.db'}"
    config = _config(database_url)
    command.upgrade(config, "head")
    command.downgrade(config, "base")

    tables = set(inspect(create_engine(database_url, future=True)).get_table_names())
    assert "transfer_requests" not in tables
    assert "idempotency_records" not in tables


def test_receipt_issue_resolution_columns(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'issues.db'}"
    config = _config(database_url)
    command.upgrade(config, "head")

    engine = create_engine(database_url, future=True)
    columns = {column["name"] for column in inspect(engine).get_columns("transfer_receipt_issues")}
    assert {"is_resolved", "resolution_notes", "resolved_at", "resolved_by"} <= columns

    engine.dispose()
    command.downgrade(config, "0001_stockflow_initial")
    columns = {column["name"] for column in inspect(engine).get_columns("transfer_receipt_issues")}
    assert "is_resolved" not in columns
    assert {"issue_type", "quantity"} <= columns
