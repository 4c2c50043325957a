"""Gestion centralisée des chemins pour le projet Player Statistics.

Ce module définit les chemins par défaut utilisés par la synchronisation :
- world/stats/ : un fichier JSON de statistiques par joueur (<uuid>.json)
- data/player-statistics.db : base SQLite locale (mode LOCAL)
- player_statistics.json : fichier de configuration
"""

from __future__ import annotations

import os
from pathlib import Path

# =============================================================================
# Chemins racine
# =============================================================================


def _find_repo_root() -> Path:
    """Trouve la racine du projet (contient pyproject.toml ou .git)."""
    # Essayer depuis le fichier courant
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent

    # Fallback : variable d'environnement ou CWD
    if env_root := os.environ.get("PLAYER_STATS_ROOT"):
        return Path(env_root)

    return Path.cwd()


# Racine du projet
REPO_ROOT: Path = _find_repo_root()

# Dossier des données
DATA_DIR: Path = REPO_ROOT / "data"


# =============================================================================
# Constantes de noms de fichiers
# =============================================================================

# Nom du fichier SQLite local
LOCAL_DB_FILENAME = "player-statistics.db"

# Nom du fichier de configuration
CONFIG_FILENAME = "player_statistics.json"

# Dossier des statistiques du monde (relatif au dossier du serveur)
DEFAULT_STATS_DIR = Path("world") / "stats"


# =============================================================================
# Fonctions utilitaires
# =============================================================================


def get_local_db_path() -> Path:
    """Retourne le chemin par défaut de la base SQLite locale.

    Returns:
        Chemin absolu vers data/player-statistics.db
    """
    return DATA_DIR / LOCAL_DB_FILENAME


def get_config_path() -> Path:
    """Retourne le chemin du fichier de configuration (env override supporté)."""
    override = os.environ.get("PLAYER_STATS_CONFIG")
    if isinstance(override, str) and override.strip():
        return Path(override.strip())
    return REPO_ROOT / CONFIG_FILENAME
