"""Modèles de données pour le module de synchronisation.

Contient les dataclasses pour :
- Catégories de statistiques et normalisation des noms
- État partagé de la synchronisation (SyncStatus, SyncState, SyncStatusSnapshot)
- Rapports de phase (UpsertReport, EnrichReport, RankingReport)
- Résultat global (SyncResult)
- Lignes Hall of Fame (HallOfFameEntry)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# =============================================================================
# Catégories de statistiques
# =============================================================================

# Ordre fixe : une table SQL par catégorie
CATEGORIES: tuple[str, ...] = (
    "broken",
    "crafted",
    "custom",
    "dropped",
    "killed",
    "killed_by",
    "mined",
    "picked_up",
    "used",
)

NAMESPACE_PREFIX = "minecraft:"

# Format d'affichage de la dernière sync
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"


def strip_namespace(name: str) -> str:
    """Retire le préfixe minecraft: d'une catégorie ou d'une statistique."""
    if name.startswith(NAMESPACE_PREFIX):
        return name[len(NAMESPACE_PREFIX) :]
    return name


# =============================================================================
# État de la synchronisation
# =============================================================================


class SyncStatus(str, Enum):
    """Phase courante de la synchronisation."""

    IDLE = "Idle"
    INITIALIZING = "Initializing"
    SYNCING_DATA = "Syncing data"
    FETCHING_NICKS = "Fetching nicks"
    UPDATING_POSITIONS = "Updating positions"
    POPULATING_HALL_OF_FAME = "Populating Hall of Fame"


@dataclass(frozen=True)
class SyncStatusSnapshot:
    """Vue figée de l'état, lisible depuis n'importe quel thread."""

    status: SyncStatus
    progress_done: int
    progress_total: int
    last_sync_display: str | None

    @property
    def is_idle(self) -> bool:
        return self.status == SyncStatus.IDLE

    def to_message(self) -> str:
        """Rapport multi-lignes (commande status)."""
        return "\n".join(
            [
                "-- Player Statistics Status --",
                f"Statut : {self.status.value}",
                f"Dernière sync : {self.last_sync_display or 'jamais'}",
                f"Progression : {self.progress_done}/{self.progress_total}",
            ]
        )

    def to_dict(self) -> dict[str, Any]:
        """Convertit en dict pour sérialisation JSON."""
        return {
            "status": self.status.value,
            "progress_done": self.progress_done,
            "progress_total": self.progress_total,
            "last_sync_display": self.last_sync_display,
        }


class SyncState:
    """État partagé d'un synchroniseur.

    Les compteurs sont modifiés par les workers, le statut uniquement par
    l'orchestrateur. Toutes les mutations passent par le verrou.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status = SyncStatus.IDLE
        self._progress_done = 0
        self._progress_total = 0
        self._last_sync_display: str | None = None

    def try_begin(self) -> bool:
        """Passe atomiquement de Idle à Initializing.

        Returns:
            False si une synchronisation est déjà en cours.
        """
        with self._lock:
            if self._status != SyncStatus.IDLE:
                return False
            self._status = SyncStatus.INITIALIZING
            self._progress_done = 0
            self._progress_total = 0
            return True

    def enter_phase(self, status: SyncStatus, total: int = 0) -> None:
        """Change de phase et remet la progression à zéro."""
        with self._lock:
            self._status = status
            self._progress_done = 0
            self._progress_total = total

    def set_total(self, total: int) -> None:
        with self._lock:
            self._progress_total = total

    def increment_done(self, n: int = 1) -> None:
        with self._lock:
            self._progress_done += n

    def set_last_sync(self, when: datetime) -> None:
        with self._lock:
            self._last_sync_display = when.strftime(DISPLAY_FORMAT)

    def reset(self) -> None:
        """Retour à Idle (fin de passe, normale ou en erreur)."""
        with self._lock:
            self._status = SyncStatus.IDLE
            self._progress_done = 0
            self._progress_total = 0

    def snapshot(self) -> SyncStatusSnapshot:
        with self._lock:
            return SyncStatusSnapshot(
                status=self._status,
                progress_done=self._progress_done,
                progress_total=self._progress_total,
                last_sync_display=self._last_sync_display,
            )


# =============================================================================
# Rapports de phase
# =============================================================================


@dataclass
class UpsertReport:
    """Résultat de la phase d'écriture des statistiques."""

    players_synced: int = 0
    players_failed: int = 0
    rows_upserted: int = 0
    timed_out: bool = False
    failed_uuids: list[str] = field(default_factory=list)
    cancelled_uuids: list[str] = field(default_factory=list)
    # mtimes des fichiers non écrits (échec ou annulation)
    unsynced_modified_at: list[datetime] = field(default_factory=list)

    @property
    def oldest_unsynced(self) -> datetime | None:
        return min(self.unsynced_modified_at, default=None)


@dataclass
class EnrichReport:
    """Résultat de la phase de récupération des pseudos."""

    candidates: int = 0
    nicks_updated: int = 0
    lookups_failed: int = 0
    timed_out: bool = False


@dataclass
class RankingReport:
    """Résultat de la phase de classement."""

    categories_ranked: int = 0
    failed_categories: list[str] = field(default_factory=list)
    timed_out: bool = False


@dataclass(frozen=True)
class HallOfFameEntry:
    """Ligne pour la table hall_of_fame."""

    player_id: int
    first_place: int
    second_place: int
    third_place: int
    fourth_place: int
    fifth_place: int
    score: int


# =============================================================================
# Résultat de synchronisation
# =============================================================================


@dataclass
class SyncResult:
    """Résultat d'une synchronisation.

    Contient les compteurs et erreurs pour le rapport final.
    """

    records_changed: int = 0
    players_synced: int = 0
    failed_players: int = 0
    rows_upserted: int = 0
    nicks_updated: int = 0
    categories_ranked: int = 0
    hall_of_fame_entries: int = 0
    already_running: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def success(self) -> bool:
        """True si la passe s'est terminée sans erreur fatale."""
        return not self.already_running and len(self.errors) == 0

    def to_message(self) -> str:
        """Message de résumé pour la console."""
        if self.already_running:
            return "⏳ Synchronisation déjà en cours"
        if not self.success:
            error_preview = ", ".join(self.errors[:2])
            return f"❌ Sync échouée: {error_preview}"

        parts = []
        if self.players_synced > 0:
            parts.append(f"{self.players_synced} joueurs synchronisés")
        if self.failed_players > 0:
            parts.append(f"{self.failed_players} en échec")
        if self.nicks_updated > 0:
            parts.append(f"{self.nicks_updated} pseudos")
        if self.hall_of_fame_entries > 0:
            parts.append(f"{self.hall_of_fame_entries} au Hall of Fame")

        if not parts:
            parts.append("Déjà à jour")

        duration_str = ""
        if self.duration_seconds > 0:
            duration_str = f" ({self.duration_seconds:.1f}s)"

        return f"✅ {', '.join(parts)}{duration_str}"

    def to_dict(self) -> dict[str, Any]:
        """Convertit en dict pour sérialisation JSON."""
        return {
            "success": self.success,
            "already_running": self.already_running,
            "records_changed": self.records_changed,
            "players_synced": self.players_synced,
            "failed_players": self.failed_players,
            "rows_upserted": self.rows_upserted,
            "nicks_updated": self.nicks_updated,
            "categories_ranked": self.categories_ranked,
            "hall_of_fame_entries": self.hall_of_fame_entries,
            "errors": self.errors,
            "warnings": self.warnings,
            "duration_seconds": self.duration_seconds,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
