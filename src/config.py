"""Configuration de la synchronisation des statistiques joueurs.

Sources, par ordre de priorité croissante :
1. Valeurs par défaut des modèles Pydantic
2. Fichier JSON (player_statistics.json ou PLAYER_STATS_CONFIG)
3. Variables d'environnement PLAYER_STATS_* (.env.local / .env chargés si présents)

Exemple de fichier :
    {
        "sync_thread_count": 0,
        "sync_interval_minutes": 5,
        "stats_dir": "world/stats",
        "database": {"location": "REMOTE", "type": "MARIADB", "host": "db",
                     "port": 3306, "name": "stats", "username": "u", "password": "p"},
        "server": {"name": "Mon serveur", "url": "https://example.org"}
    }
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.utils.paths import DEFAULT_STATS_DIR, REPO_ROOT, get_config_path, get_local_db_path

logger = logging.getLogger(__name__)

DatabaseLocation = Literal["LOCAL", "REMOTE"]
DatabaseType = Literal["SQLITE", "MYSQL", "MARIADB", "POSTGRESQL"]

# Variables d'environnement → champ de DatabaseSettings
_DB_ENV_OVERRIDES: dict[str, str] = {
    "PLAYER_STATS_DB_LOCATION": "location",
    "PLAYER_STATS_DB_TYPE": "type",
    "PLAYER_STATS_DB_HOST": "host",
    "PLAYER_STATS_DB_PORT": "port",
    "PLAYER_STATS_DB_NAME": "name",
    "PLAYER_STATS_DB_USER": "username",
    "PLAYER_STATS_DB_PASSWORD": "password",
    "PLAYER_STATS_DB_PATH": "sqlite_path",
}


class DatabaseSettings(BaseModel):
    """Paramètres de connexion à la base.

    LOCAL implique toujours SQLite (fichier sqlite_path).
    REMOTE exige host/port/name/username/password.
    """

    model_config = ConfigDict(extra="ignore")

    location: DatabaseLocation = "LOCAL"
    type: DatabaseType = "SQLITE"
    host: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)
    name: str | None = None
    username: str | None = None
    password: str | None = None
    sqlite_path: Path = Field(default_factory=get_local_db_path)

    @field_validator("location", "type", mode="before")
    @classmethod
    def upper_case(cls, v: Any) -> Any:
        """Normalise la casse (mariadb → MARIADB)."""
        return v.strip().upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_remote(self) -> DatabaseSettings:
        """Vérifie la cohérence LOCAL/REMOTE."""
        if self.location == "LOCAL":
            self.type = "SQLITE"
            return self
        missing = [
            k
            for k in ("host", "port", "name", "username", "password")
            if getattr(self, k) in (None, "")
        ]
        if missing:
            raise ValueError(f"Base REMOTE: paramètres manquants {missing}")
        if self.type == "SQLITE":
            raise ValueError("Base REMOTE: SQLite n'est supporté qu'en mode LOCAL")
        return self

    @property
    def effective_type(self) -> str:
        """Type de base effectivement utilisé."""
        return "SQLITE" if self.location == "LOCAL" else self.type


class ServerDescriptor(BaseModel):
    """Informations publiées dans sync_metadata pour le front-end."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, max_length=256)
    description: str | None = Field(default=None, max_length=256)
    url: str | None = Field(default=None, max_length=256)
    icon_path: Path | None = None

    def read_icon(self) -> bytes | None:
        """Lit l'icône du serveur si le fichier existe."""
        if self.icon_path is None:
            return None
        try:
            return self.icon_path.read_bytes()
        except OSError as e:
            logger.warning(f"Icône serveur illisible ({self.icon_path}): {e}")
            return None


class SyncSettings(BaseModel):
    """Paramètres globaux de la synchronisation.

    Attributes:
        sync_thread_count: Workers par phase (0 = tous les CPU, négatif = CPU - |n|).
        sync_interval_minutes: Intervalle du planificateur (<= 0 : désactivé).
        sync_timeout_seconds: Budget de la phase d'upsert.
        nick_timeout_seconds: Budget de la phase de récupération des pseudos.
        ranking_timeout_seconds: Budget de la phase de classement.
        nick_request_timeout_seconds: Timeout d'une requête HTTP de pseudo.
        stats_dir: Dossier world/stats du serveur.
    """

    model_config = ConfigDict(extra="ignore")

    sync_thread_count: int = 0
    sync_interval_minutes: int = 5
    sync_timeout_seconds: float = Field(default=60.0, gt=0)
    nick_timeout_seconds: float = Field(default=180.0, gt=0)
    ranking_timeout_seconds: float = Field(default=180.0, gt=0)
    nick_request_timeout_seconds: float = Field(default=10.0, gt=0)
    stats_dir: Path = DEFAULT_STATS_DIR
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    server: ServerDescriptor = Field(default_factory=ServerDescriptor)

    @property
    def worker_count(self) -> int:
        """Nombre de workers effectif (voir effective_thread_count)."""
        return effective_thread_count(self.sync_thread_count)


def effective_thread_count(configured: int, cpu_count: int | None = None) -> int:
    """Normalise le nombre de workers configuré.

    - 0 → nombre de CPU disponibles
    - négatif → CPU - |n|, au minimum 1
    - supérieur au nombre de CPU → nombre de CPU

    Args:
        configured: Valeur de sync_thread_count.
        cpu_count: Nombre de CPU (os.cpu_count() si None).

    Returns:
        Nombre de workers >= 1.
    """
    cpus = cpu_count if cpu_count is not None else (os.cpu_count() or 1)
    cpus = max(1, cpus)
    if configured == 0:
        return cpus
    if configured < 0:
        return max(1, cpus + configured)
    return min(configured, cpus)


ENV_FILE_NAMES: tuple[str, ...] = (".env.local", ".env")


def _parse_env_line(line: str) -> tuple[str, str] | None:
    """Découpe une ligne `[export ]CLE=valeur` ; None pour un commentaire."""
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith("export "):
        line = line[len("export ") :]
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    return key, value


def load_env_files(root: Path | None = None) -> list[Path]:
    """Charge .env.local puis .env dans os.environ.

    Une variable déjà définie n'est jamais écrasée : l'environnement du
    processus prime, puis .env.local, puis .env.

    Args:
        root: Dossier contenant les fichiers (REPO_ROOT si None).

    Returns:
        Fichiers effectivement lus, dans l'ordre de chargement.
    """
    directory = root or REPO_ROOT
    loaded: list[Path] = []
    for name in ENV_FILE_NAMES:
        env_path = directory / name
        if not env_path.is_file():
            continue
        try:
            lines = env_path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning(f"Fichier {env_path} illisible: {e}")
            continue
        for line in lines:
            parsed = _parse_env_line(line)
            if parsed is not None:
                os.environ.setdefault(*parsed)
        loaded.append(env_path)
    return loaded


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Applique les variables PLAYER_STATS_* sur le dict brut."""
    db = dict(raw.get("database") or {})
    for env_key, field in _DB_ENV_OVERRIDES.items():
        value = os.environ.get(env_key)
        if value is not None and value.strip():
            db[field] = value.strip()
    if db:
        raw["database"] = db

    threads = os.environ.get("PLAYER_STATS_THREADS")
    if threads is not None and threads.strip():
        raw["sync_thread_count"] = threads.strip()

    stats_dir = os.environ.get("PLAYER_STATS_DIR")
    if stats_dir is not None and stats_dir.strip():
        raw["stats_dir"] = stats_dir.strip()
    return raw


def load_settings(path: Path | str | None = None) -> SyncSettings:
    """Charge la configuration depuis le fichier JSON et l'environnement.

    Args:
        path: Chemin du fichier JSON (get_config_path() si None).

    Returns:
        SyncSettings validés.

    Raises:
        ValueError: Si le fichier est invalide (JSON ou validation).
    """
    for env_path in load_env_files():
        logger.debug(f"Variables chargées depuis {env_path}")

    config_path = Path(path) if path is not None else get_config_path()
    raw: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = json.load(f) or {}
        except json.JSONDecodeError as e:
            raise ValueError(f"Configuration invalide ({config_path}): {e}") from e
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration invalide ({config_path}): objet JSON attendu")
        raw = loaded
        logger.debug(f"Configuration chargée depuis {config_path}")
    else:
        logger.info(f"Pas de configuration ({config_path}), valeurs par défaut (SQLite local)")

    return SyncSettings.model_validate(_apply_env_overrides(raw))
