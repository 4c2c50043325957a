"""Tests pour src/data/sync/migrations.py (schéma et sync_metadata)."""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import inspect, text

from src.config import ServerDescriptor
from src.data.sync.dialects import MySQLDialect, PostgreSQLDialect, SQLiteDialect
from src.data.sync.errors import SchemaInitError
from src.data.sync.migrations import (
    EPOCH,
    ensure_schema,
    get_last_sync_time,
    position_index_name,
    schema_statements,
    update_sync_metadata,
)
from src.data.sync.models import CATEGORIES


class TestSchemaStatements:
    def test_table_count(self):
        statements = schema_statements(SQLiteDialect())
        # uuid_map, sync_metadata, hall_of_fame + 9 catégories
        assert len(statements) == 3 + len(CATEGORIES)
        assert "uuid_map" in statements[0]

    def test_mysql_suffix_and_types(self):
        statements = schema_statements(MySQLDialect())
        assert all("utf8mb4" in s for s in statements)
        assert "AUTO_INCREMENT" in statements[0]
        assert "MEDIUMBLOB" in statements[1]
        assert "DATETIME" in statements[1]

    def test_postgres_types(self):
        statements = schema_statements(PostgreSQLDialect())
        assert "player_uuid UUID NOT NULL UNIQUE" in statements[0]
        assert "BYTEA" in statements[1]

    def test_stat_table_shape(self):
        mined = next(s for s in schema_statements(SQLiteDialect()) if "EXISTS mined" in s)
        assert "PRIMARY KEY (player_id, stat_name)" in mined
        assert "ON DELETE CASCADE" in mined
        assert "position INTEGER DEFAULT NULL" in mined


class TestEnsureSchema:
    def test_creates_all_tables(self, sqlite_engine, dialect):
        ensure_schema(sqlite_engine, dialect)
        tables = set(inspect(sqlite_engine).get_table_names())
        assert {"uuid_map", "sync_metadata", "hall_of_fame"} <= tables
        assert set(CATEGORIES) <= tables

    def test_idempotent(self, sqlite_engine, dialect):
        ensure_schema(sqlite_engine, dialect)
        ensure_schema(sqlite_engine, dialect)
        with sqlite_engine.connect() as conn:
            count = conn.execute(text("SELECT COUNT(*) FROM sync_metadata")).scalar_one()
        assert count == 1

    def test_position_indexes(self, db):
        inspector = inspect(db)
        for category in CATEGORIES:
            names = {ix["name"] for ix in inspector.get_indexes(category)}
            assert position_index_name(category) in names

    def test_seeded_with_epoch(self, db, dialect):
        with db.connect() as conn:
            assert get_last_sync_time(conn, dialect) == EPOCH

    def test_adds_missing_metadata_columns(self, sqlite_engine, dialect):
        """Une ancienne table sync_metadata reçoit les colonnes serveur."""
        with sqlite_engine.begin() as conn:
            conn.execute(
                text("CREATE TABLE sync_metadata (id INTEGER PRIMARY KEY, last_update TEXT NOT NULL)")
            )
        ensure_schema(sqlite_engine, dialect)
        columns = {c["name"] for c in inspect(sqlite_engine).get_columns("sync_metadata")}
        assert {"server_name", "server_desc", "server_url", "server_icon"} <= columns

    def test_failure_wrapped(self, sqlite_engine, dialect):
        """Un conflit de schéma devient SchemaInitError."""
        with sqlite_engine.begin() as conn:
            conn.execute(text("CREATE VIEW mined AS SELECT 1 AS player_id"))
        with pytest.raises(SchemaInitError):
            ensure_schema(sqlite_engine, dialect)


class TestSyncMetadata:
    def test_update_then_read(self, db, dialect):
        when = datetime(2024, 6, 1, 8, 30, 0, 123_456)
        with db.begin() as conn:
            update_sync_metadata(conn, dialect, when)
        with db.connect() as conn:
            assert get_last_sync_time(conn, dialect) == datetime(2024, 6, 1, 8, 30, 0)

    def test_single_row_kept(self, db, dialect):
        with db.begin() as conn:
            update_sync_metadata(conn, dialect, datetime(2024, 6, 1))
            update_sync_metadata(conn, dialect, datetime(2024, 6, 2))
        with db.connect() as conn:
            assert conn.execute(text("SELECT COUNT(*) FROM sync_metadata")).scalar_one() == 1

    def test_inserts_when_empty(self, db, dialect):
        with db.begin() as conn:
            conn.execute(text("DELETE FROM sync_metadata"))
            update_sync_metadata(conn, dialect, datetime(2024, 6, 3))
        with db.connect() as conn:
            assert get_last_sync_time(conn, dialect) == datetime(2024, 6, 3)

    def test_server_descriptor(self, db, dialect, tmp_path):
        icon = tmp_path / "icon.png"
        icon.write_bytes(b"PNGDATA")
        server = ServerDescriptor(
            name="Survie", description="Serveur communautaire", url="https://mc.example", icon_path=icon
        )
        with db.begin() as conn:
            update_sync_metadata(conn, dialect, datetime(2024, 6, 1), server)
        with db.connect() as conn:
            row = conn.execute(
                text("SELECT server_name, server_desc, server_url, server_icon FROM sync_metadata")
            ).one()
        assert row.server_name == "Survie"
        assert row.server_desc == "Serveur communautaire"
        assert row.server_url == "https://mc.example"
        assert bytes(row.server_icon) == b"PNGDATA"

    def test_missing_row_reads_epoch(self, db, dialect):
        with db.begin() as conn:
            conn.execute(text("DELETE FROM sync_metadata"))
        with db.connect() as conn:
            assert get_last_sync_time(conn, dialect) == EPOCH
