from .base import db, Model, metadata, utcnow

# Import model modules so tables register with metadata
from .players import Player, Session, PlayerSettings, PlayerProgression, CurrencyTransaction  # noqa: F401
from .cosmetics import CosmeticItem, PlayerCosmetic, Loadout, LoadoutCosmetic  # noqa: F401
from .loot import LootTable, LootTableEntry  # noqa: F401
from .servers import Server, JoinToken, ServerFavorite  # noqa: F401
from .matches import Match, PlayerMatchStats  # noqa: F401
from .social import Friend  # noqa: F401

__all__ = [
    "db", "Model", "metadata", "utcnow",
    "Player", "Session", "PlayerSettings", "PlayerProgression", "CurrencyTransaction",
    "CosmeticItem", "PlayerCosmetic", "Loadout", "LoadoutCosmetic",
    "LootTable", "LootTableEntry",
    "Server", "JoinToken", "ServerFavorite",
    "Match", "PlayerMatchStats",
    "Friend",
]
