"""Fixtures communes pour les tests.

Ce fichier contient des fixtures partagées pour tous les tests :
configuration SQLite temporaire, engine avec schéma initialisé et
constructeur de dossier world/stats.
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine

from src.config import DatabaseSettings, SyncSettings
from src.data.sync.dialects import SQLiteDialect
from src.data.sync.migrations import ensure_schema
from src.db.connection import create_sync_engine

# UUID Java et bridge (Bedrock) réalistes
JAVA_UUID_A = "069a79f4-44e9-4726-a5be-fca90e38aaf5"
JAVA_UUID_B = "853c80ef-3c37-49fd-aa49-938b674adae6"
JAVA_UUID_C = "f7c77d99-9f15-4a66-a87d-c4a51ef30d19"
BRIDGE_UUID = "00000000-0000-0000-0009-01f4a5b2c3d4"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isole les tests des variables PLAYER_STATS_* de la machine."""
    for key in list(os.environ):
        if key.startswith("PLAYER_STATS_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# CONFIGURATION
# =============================================================================


@pytest.fixture
def stats_dir(tmp_path: Path) -> Path:
    """Dossier world/stats vide."""
    path = tmp_path / "world" / "stats"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def settings_factory(tmp_path: Path, stats_dir: Path) -> Callable[..., SyncSettings]:
    """Fabrique de SyncSettings pointant sur une base SQLite temporaire."""

    def _factory(**overrides: Any) -> SyncSettings:
        values: dict[str, Any] = {
            "sync_thread_count": 2,
            "stats_dir": stats_dir,
            "database": DatabaseSettings(sqlite_path=tmp_path / "player-statistics.db"),
        }
        values.update(overrides)
        return SyncSettings(**values)

    return _factory


@pytest.fixture
def sqlite_settings(settings_factory: Callable[..., SyncSettings]) -> SyncSettings:
    return settings_factory()


# =============================================================================
# BASE DE DONNÉES
# =============================================================================


@pytest.fixture
def dialect() -> SQLiteDialect:
    return SQLiteDialect()


@pytest.fixture
def sqlite_engine(sqlite_settings: SyncSettings) -> Iterator[Engine]:
    """Engine SQLite temporaire (schéma non créé)."""
    engine = create_sync_engine(sqlite_settings.database, pool_size=4)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db(sqlite_engine: Engine, dialect: SQLiteDialect) -> Engine:
    """Engine SQLite temporaire avec schéma initialisé."""
    ensure_schema(sqlite_engine, dialect)
    return sqlite_engine


@pytest.fixture
def insert_player(db: Engine) -> Callable[..., int]:
    """Insère un joueur dans uuid_map et retourne son id."""

    def _insert(player_uuid: str, nick: str | None = None) -> int:
        with db.begin() as conn:
            result = conn.execute(
                text("INSERT INTO uuid_map (player_uuid, player_nick) VALUES (:u, :n)"),
                {"u": player_uuid, "n": nick},
            )
            return int(result.lastrowid)

    return _insert


@pytest.fixture
def insert_stat(db: Engine) -> Callable[..., None]:
    """Insère une ligne de statistique brute."""

    def _insert(category: str, player_id: int, stat_name: str, amount: int) -> None:
        with db.begin() as conn:
            conn.execute(
                text(
                    f"INSERT INTO {category} (player_id, stat_name, amount) "
                    "VALUES (:p, :s, :a)"
                ),
                {"p": player_id, "s": stat_name, "a": amount},
            )

    return _insert


# =============================================================================
# FICHIERS DE STATISTIQUES
# =============================================================================


@pytest.fixture
def write_stats(stats_dir: Path) -> Callable[..., Path]:
    """Écrit un fichier <uuid>.json et fixe sa date de modification."""

    def _write(
        player_uuid: str,
        stats: dict[str, dict[str, Any]] | None,
        *,
        modified_at: datetime | None = None,
    ) -> Path:
        path = stats_dir / f"{player_uuid}.json"
        document: dict[str, Any] = {"DataVersion": 3953}
        if stats is not None:
            document["stats"] = stats
        path.write_text(json.dumps(document), encoding="utf-8")
        if modified_at is not None:
            ts = modified_at.replace(tzinfo=timezone.utc).timestamp()
            os.utime(path, (ts, ts))
        return path

    return _write
