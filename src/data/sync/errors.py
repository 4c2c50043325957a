"""Exceptions du module de synchronisation des statistiques.

Hiérarchie :
- StatSyncError : base commune
- UnsupportedDialectError : type de base non supporté
- UnknownCategoryError : catégorie hors des neuf catégories connues
- SchemaInitError : échec d'initialisation du schéma ou des métadonnées (fatal)
- IdentityResolutionError : échec de résolution UUID → id (fatal pour le joueur)
- SourceReadError : fichier de statistiques illisible (fatal pour le joueur)
- PhaseCancelledError : travail interrompu par le délai de phase (annulé)
"""

from __future__ import annotations


class StatSyncError(Exception):
    """Erreur de base de la synchronisation."""


class UnsupportedDialectError(StatSyncError, ValueError):
    """Levée lorsque le type de base de données n'est pas supporté."""

    def __init__(self, db_type: str):
        self.db_type = db_type
        super().__init__(
            f"Type de base non supporté: '{db_type}'. "
            "Valeurs acceptées: SQLITE, MYSQL, MARIADB, POSTGRESQL"
        )


class UnknownCategoryError(StatSyncError, ValueError):
    """Levée lorsqu'un nom de table ne fait pas partie des catégories connues.

    Les noms de tables sont interpolés dans le SQL : ils ne doivent jamais
    provenir d'une entrée externe.
    """

    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Catégorie de statistiques inconnue: '{category}'")


class SchemaInitError(StatSyncError):
    """Échec de création du schéma ou d'écriture des métadonnées de sync."""


class IdentityResolutionError(StatSyncError):
    """Impossible d'obtenir l'id interne d'un joueur."""

    def __init__(self, external_uuid: str, cause: Exception | None = None):
        self.external_uuid = external_uuid
        msg = f"Résolution impossible pour {external_uuid}"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)


class SourceReadError(StatSyncError):
    """Fichier de statistiques illisible ou sans objet stats (non fatal)."""


class PhaseCancelledError(StatSyncError):
    """Travail interrompu avant commit car la phase a dépassé son délai."""
