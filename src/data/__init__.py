"""
Module data : synchronisation des statistiques joueurs vers une base SQL.
(Data module: player statistics sync into a SQL store)

HOW IT WORKS:
1. sync.scanner : détecte les fichiers world/stats/<uuid>.json modifiés
2. sync.upsert / sync.identity : écrit les statistiques par catégorie
3. sync.enricher : complète les pseudos manquants via les APIs publiques
4. sync.rankings / sync.hall_of_fame : classements top 5 et Hall of Fame

Usage:
    from src.data.sync import StatSyncEngine
    from src.config import load_settings

    engine = StatSyncEngine(load_settings())
    result = await engine.sync_all()
"""
