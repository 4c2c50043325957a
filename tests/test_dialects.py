"""Tests pour src/data/sync/dialects.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.data.sync.dialects import (
    TOP_N,
    MariaDBDialect,
    MySQLDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    get_dialect,
)
from src.data.sync.errors import UnknownCategoryError, UnsupportedDialectError
from src.data.sync.models import CATEGORIES


class TestGetDialect:
    @pytest.mark.parametrize(
        "db_type,expected",
        [
            ("SQLITE", SQLiteDialect),
            ("mysql", MySQLDialect),
            ("MariaDB", MariaDBDialect),
            (" postgresql ", PostgreSQLDialect),
        ],
    )
    def test_known_types(self, db_type, expected):
        assert type(get_dialect(db_type)) is expected

    def test_unknown_type(self):
        with pytest.raises(UnsupportedDialectError) as exc_info:
            get_dialect("ORACLE")
        assert exc_info.value.db_type == "ORACLE"

    def test_unsupported_is_value_error(self):
        with pytest.raises(ValueError):
            get_dialect("")


class TestTableName:
    def test_all_categories_accepted(self):
        for category in CATEGORIES:
            assert SQLiteDialect.table_name(category) == category

    def test_unknown_category(self):
        with pytest.raises(UnknownCategoryError):
            SQLiteDialect.table_name("uuid_map")

    def test_injection_rejected(self):
        with pytest.raises(UnknownCategoryError):
            MySQLDialect().reset_ranks(None, "mined; DROP TABLE uuid_map")


class TestTimestamps:
    def test_truncates_microseconds(self):
        dialect = MySQLDialect()
        value = dialect.to_db_timestamp(datetime(2024, 5, 1, 12, 30, 15, 999_999))
        assert value == datetime(2024, 5, 1, 12, 30, 15)

    def test_aware_converted_to_utc(self):
        dialect = PostgreSQLDialect()
        paris = timezone(timedelta(hours=2))
        value = dialect.to_db_timestamp(datetime(2024, 5, 1, 14, 0, 0, tzinfo=paris))
        assert value == datetime(2024, 5, 1, 12, 0, 0)
        assert value.tzinfo is None

    def test_sqlite_text(self):
        dialect = SQLiteDialect()
        assert dialect.to_db_timestamp(datetime(2024, 5, 1, 12, 0, 0, 500)) == "2024-05-01 12:00:00"

    def test_parse_sqlite_text(self):
        dialect = SQLiteDialect()
        assert dialect.from_db_timestamp("2024-05-01 12:00:00") == datetime(2024, 5, 1, 12, 0, 0)
        assert dialect.from_db_timestamp("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, 0, 0)

    def test_parse_datetime_passthrough(self):
        dialect = MySQLDialect()
        dt = datetime(2024, 5, 1, 12, 0, 0)
        assert dialect.from_db_timestamp(dt) == dt

    def test_parse_invalid(self):
        dialect = SQLiteDialect()
        assert dialect.from_db_timestamp(None) is None
        assert dialect.from_db_timestamp("") is None
        assert dialect.from_db_timestamp("hier") is None
        assert dialect.from_db_timestamp(12345) is None


class TestStatements:
    """Texte SQL spécifique à chaque backend."""

    def test_sqlite_upsert(self):
        sql = SQLiteDialect().upsert_statement("mined")
        assert "ON CONFLICT (player_id, stat_name)" in sql
        assert "excluded.amount" in sql

    def test_mysql_upsert(self):
        sql = MariaDBDialect().upsert_statement("used")
        assert "ON DUPLICATE KEY UPDATE amount = VALUES(amount)" in sql

    def test_postgres_upsert(self):
        assert "ON CONFLICT" in PostgreSQLDialect().upsert_statement("killed")

    def test_rank_ordering_and_top_n(self):
        for dialect in (SQLiteDialect(), MySQLDialect(), PostgreSQLDialect()):
            assert f"row_num <= {TOP_N}" in dialect.rank_statement("custom")
        assert "ORDER BY amount DESC, player_id ASC" in SQLiteDialect().rank_statement("custom")
        assert "amount > 0" in PostgreSQLDialect().rank_statement("custom")

    def test_mysql_rank_uses_temporary_table(self):
        sql = MySQLDialect().rank_statement("picked_up")
        assert "ranked_data_picked_up" in sql

    def test_column_types(self):
        assert PostgreSQLDialect().uuid_column_type() == "UUID"
        assert PostgreSQLDialect().blob_column_type() == "BYTEA"
        assert MySQLDialect().blob_column_type() == "MEDIUMBLOB"
        assert "AUTO_INCREMENT" in MySQLDialect().id_column_definition()
        assert "SERIAL" in PostgreSQLDialect().id_column_definition()
        assert SQLiteDialect().id_column_definition() == "id INTEGER PRIMARY KEY"
        assert "utf8mb4" in MariaDBDialect().table_suffix()
        assert SQLiteDialect().table_suffix() == ""

    def test_concurrency_flags(self):
        assert SQLiteDialect.supports_concurrent_ranking is False
        assert MySQLDialect.supports_concurrent_ranking is True
        assert PostgreSQLDialect.supports_concurrent_ranking is True


class TestSqliteAssignRanks:
    def test_returns_ranked_row_count(self, db, dialect, insert_player, insert_stat):
        """Le nombre retourné correspond aux lignes réellement classées."""
        ids = [insert_player(f"00000000-0000-4000-8000-00000000001{i}") for i in range(3)]
        for i, player_id in enumerate(ids):
            insert_stat("mined", player_id, "stone", 10 + i)
        insert_stat("mined", ids[0], "dirt", 0)

        with db.begin() as conn:
            ranked = dialect.assign_ranks(conn, "mined")

        assert ranked == 3
