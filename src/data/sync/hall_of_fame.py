"""Hall of Fame : synthèse des positions de tous les joueurs.

Pour chaque joueur ayant au moins une position, on compte ses 1ères,
2èmes, ..., 5èmes places toutes catégories confondues et on calcule
un score pondéré :

    score = 10·c1 + 5·c2 + 3·c3 + 2·c4 + 1·c5
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict
from typing import TYPE_CHECKING

import polars as pl
from sqlalchemy import text
from sqlalchemy.engine import Engine

from src.data.sync.models import CATEGORIES, HallOfFameEntry

if TYPE_CHECKING:
    from src.data.sync.dialects import StatDialect

logger = logging.getLogger(__name__)

# Points par position
POINTS: dict[int, int] = {1: 10, 2: 5, 3: 3, 4: 2, 5: 1}

# Position → colonne de hall_of_fame
RANK_COLUMNS: dict[int, str] = {
    1: "first_place",
    2: "second_place",
    3: "third_place",
    4: "fourth_place",
    5: "fifth_place",
}


def ranked_rows_query(dialect: StatDialect) -> str:
    """UNION ALL des (player_id, position) classés des neuf catégories."""
    parts = [
        f"SELECT player_id, position FROM {dialect.table_name(c)} WHERE position IS NOT NULL"
        for c in CATEGORIES
    ]
    return " UNION ALL ".join(parts)


def compute_hall_of_fame(ranked_rows: Iterable[tuple[int, int]]) -> list[HallOfFameEntry]:
    """Agrège les positions par joueur.

    Args:
        ranked_rows: Couples (player_id, position), une ligne par statistique classée.

    Returns:
        Entrées triées par score décroissant puis player_id. Les joueurs
        sans aucune position n'apparaissent pas.
    """
    rows = [(int(p), int(r)) for p, r in ranked_rows if r in POINTS]
    if not rows:
        return []

    df = pl.DataFrame(
        rows,
        schema={"player_id": pl.Int64, "position": pl.Int64},
        orient="row",
    )

    agg = df.group_by("player_id").agg(
        [
            (pl.col("position") == rank).sum().cast(pl.Int64).alias(column)
            for rank, column in RANK_COLUMNS.items()
        ]
    )
    agg = agg.with_columns(
        pl.sum_horizontal(
            [pl.col(column) * POINTS[rank] for rank, column in RANK_COLUMNS.items()]
        ).alias("score")
    ).sort(["score", "player_id"], descending=[True, False])

    return [HallOfFameEntry(**row) for row in agg.iter_rows(named=True)]


def populate_hall_of_fame(engine: Engine, dialect: StatDialect) -> int:
    """Reconstruit la table hall_of_fame dans une seule transaction.

    Args:
        engine: Engine SQLAlchemy.
        dialect: Adaptateur du backend.

    Returns:
        Nombre d'entrées écrites.
    """
    with engine.begin() as conn:
        dialect.clear_hall_of_fame(conn)
        ranked = conn.execute(text(ranked_rows_query(dialect))).all()
        entries = compute_hall_of_fame((row[0], row[1]) for row in ranked)
        if entries:
            conn.execute(
                text(
                    "INSERT INTO hall_of_fame (player_id, first_place, second_place, "
                    "third_place, fourth_place, fifth_place, score) VALUES "
                    "(:player_id, :first_place, :second_place, :third_place, "
                    ":fourth_place, :fifth_place, :score)"
                ),
                [asdict(e) for e in entries],
            )

    logger.info(f"Hall of Fame: {len(entries)} joueurs")
    return len(entries)
