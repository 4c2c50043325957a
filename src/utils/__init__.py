"""Utilitaires partagés pour le projet Player Statistics."""

from src.utils.paths import (
    CONFIG_FILENAME,
    DATA_DIR,
    DEFAULT_STATS_DIR,
    REPO_ROOT,
    get_config_path,
    get_local_db_path,
)
from src.utils.xuid import (
    BRIDGE_UUID_PREFIX,
    UUID_RE,
    is_bridge_uuid,
    parse_player_uuid,
    xuid_from_bridge_uuid,
)

__all__ = [
    # paths
    "REPO_ROOT",
    "DATA_DIR",
    "DEFAULT_STATS_DIR",
    "CONFIG_FILENAME",
    "get_config_path",
    "get_local_db_path",
    # uuid / xuid
    "BRIDGE_UUID_PREFIX",
    "UUID_RE",
    "parse_player_uuid",
    "is_bridge_uuid",
    "xuid_from_bridge_uuid",
]
