"""Module de synchronisation world/stats → base SQL.

Ce module gère le pipeline de synchronisation :
Fichiers JSON joueurs → Upsert par catégorie → Pseudos → Positions → Hall of Fame

Architecture:
- scanner.py : détection des fichiers modifiés depuis la dernière passe
- dialects.py : variantes SQL (SQLite, MySQL, MariaDB, PostgreSQL)
- migrations.py : schéma et sync_metadata
- identity.py : résolution UUID → id interne
- upsert.py : pool de workers d'écriture des statistiques
- api_client.py / enricher.py : récupération des pseudos manquants
- rankings.py : positions top 5 par statistique
- hall_of_fame.py : score pondéré par joueur
- engine.py : orchestrateur StatSyncEngine
- scheduler.py : déclenchement périodique
- models.py : état, rapports et SyncResult

Usage:
    from src.config import load_settings
    from src.data.sync import StatSyncEngine

    engine = StatSyncEngine(load_settings())
    result = await engine.sync_all()
    print(result.to_message())
"""

from src.data.sync.api_client import NickLookupClient
from src.data.sync.dialects import (
    MariaDBDialect,
    MySQLDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    StatDialect,
    get_dialect,
)
from src.data.sync.engine import StatSyncEngine
from src.data.sync.enricher import NicknameEnricher
from src.data.sync.errors import (
    IdentityResolutionError,
    PhaseCancelledError,
    SchemaInitError,
    SourceReadError,
    StatSyncError,
    UnknownCategoryError,
    UnsupportedDialectError,
)
from src.data.sync.hall_of_fame import POINTS, compute_hall_of_fame, populate_hall_of_fame
from src.data.sync.identity import IdentityResolver
from src.data.sync.migrations import ensure_schema, get_last_sync_time, update_sync_metadata
from src.data.sync.models import (
    CATEGORIES,
    HallOfFameEntry,
    SyncResult,
    SyncState,
    SyncStatus,
    SyncStatusSnapshot,
)
from src.data.sync.rankings import RankingEngine
from src.data.sync.scanner import PlayerRecordRef, load_player_stats, scan_changed_records
from src.data.sync.scheduler import StatSyncScheduler
from src.data.sync.upsert import StatUpsertPool, group_stats_by_category, sync_player

__all__ = [
    # Models
    "CATEGORIES",
    "HallOfFameEntry",
    "SyncResult",
    "SyncState",
    "SyncStatus",
    "SyncStatusSnapshot",
    # Engine
    "StatSyncEngine",
    "StatSyncScheduler",
    # Phases
    "PlayerRecordRef",
    "scan_changed_records",
    "load_player_stats",
    "IdentityResolver",
    "StatUpsertPool",
    "group_stats_by_category",
    "sync_player",
    "NickLookupClient",
    "NicknameEnricher",
    "RankingEngine",
    "POINTS",
    "compute_hall_of_fame",
    "populate_hall_of_fame",
    # Schéma
    "ensure_schema",
    "get_last_sync_time",
    "update_sync_metadata",
    # Dialects
    "StatDialect",
    "SQLiteDialect",
    "MySQLDialect",
    "MariaDBDialect",
    "PostgreSQLDialect",
    "get_dialect",
    # Errors
    "StatSyncError",
    "UnsupportedDialectError",
    "UnknownCategoryError",
    "SchemaInitError",
    "IdentityResolutionError",
    "SourceReadError",
    "PhaseCancelledError",
]
