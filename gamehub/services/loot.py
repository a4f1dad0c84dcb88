"""Weighted loot drops and loot-table administration.

A drop is two weighted rolls: each active table (ascending id) gets a
Bernoulli trial against its ``drop_chance`` and the first hit wins, then one
entry of that table is chosen proportionally to its ``weight``. The chosen
cosmetic is granted with ``unlocked_via="loot_drop"``; a player who already
owns it simply keeps the single ownership row.
"""
from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional, Sequence

import sqlalchemy as sa

from ..models import db, CosmeticItem, LootTable, LootTableEntry
from .store import SqlStore

logger = logging.getLogger(__name__)

LOOT_DROP_CHANNEL = "loot_drop"


class LootError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class LootUnavailable(LootError):
    """Nothing was granted this time; not a fault."""


class NoActiveTables(LootUnavailable):
    def __init__(self):
        super().__init__("no_active_tables", "No active loot tables")


class NoDrop(LootUnavailable):
    def __init__(self):
        super().__init__("no_drop", "No drop from any loot table")


class EmptyTable(LootUnavailable):
    def __init__(self, loot_table_id: int):
        super().__init__("empty_table", f"Loot table {loot_table_id} has no entries")
        self.loot_table_id = loot_table_id


class LootIntegrityError(LootError):
    """Loot configuration references data that is missing or inconsistent."""


class InvalidWeights(LootIntegrityError):
    def __init__(self, loot_table_id: int):
        super().__init__("invalid_weights", f"Loot table {loot_table_id} total weight must be positive")
        self.loot_table_id = loot_table_id


class CosmeticNotFound(LootIntegrityError):
    def __init__(self, cosmetic_id: int):
        super().__init__("cosmetic_not_found", f"Cosmetic {cosmetic_id} not found")
        self.cosmetic_id = cosmetic_id


class LootTableNotFound(LootError):
    def __init__(self, loot_table_id: int):
        super().__init__("loot_table_not_found", "Loot table not found")


class LootEntryNotFound(LootError):
    def __init__(self, loot_entry_id: int):
        super().__init__("loot_entry_not_found", "Loot table entry not found")


class InvalidLootConfig(LootError):
    def __init__(self, message: str):
        super().__init__("invalid_loot_config", message)


def select_weighted(entries: Sequence[LootTableEntry], rng: random.Random) -> LootTableEntry:
    """Linear-scan weighted pick: entry i wins when cum(i-1) <= w < cum(i)."""
    total = sum(e.weight for e in entries)
    w = rng.randrange(total)
    cumulative = 0
    for entry in entries:
        cumulative += entry.weight
        if w < cumulative:
            return entry
    return entries[-1]


class LootEngine:
    def __init__(self, store: Optional[SqlStore] = None, rng: Optional[random.Random] = None):
        self.store = store or SqlStore()
        self.rng = rng or random.Random()

    def roll_table(self, tables: Sequence[LootTable]) -> Optional[LootTable]:
        for table in tables:
            if self.rng.random() < table.drop_chance:
                return table
        return None

    def pick_entry(self, table: LootTable) -> LootTableEntry:
        entries = self.store.get_loot_table_entries(table.loot_table_id)
        if not entries:
            raise EmptyTable(table.loot_table_id)
        if sum(e.weight for e in entries) <= 0:
            raise InvalidWeights(table.loot_table_id)
        return select_weighted(entries, self.rng)

    def generate_loot_drop(self, player_id: int) -> CosmeticItem:
        tables = self.store.list_active_loot_tables()
        if not tables:
            raise NoActiveTables()

        table = self.roll_table(tables)
        if table is None:
            raise NoDrop()

        try:
            entry = self.pick_entry(table)
        except InvalidWeights as exc:
            logger.error("loot table misconfigured loot_table_id=%s: %s", exc.loot_table_id, exc.message)
            raise

        cosmetic_id = entry.cosmetic_id
        if not self.store.grant_cosmetic(player_id, cosmetic_id, LOOT_DROP_CHANNEL):
            logger.debug("player already owns cosmetic player_id=%s cosmetic_id=%s", player_id, cosmetic_id)

        cosmetic = self.store.get_cosmetic_item(cosmetic_id)
        if cosmetic is None:
            logger.error(
                "loot entry references missing cosmetic loot_table_id=%s loot_entry_id=%s cosmetic_id=%s",
                table.loot_table_id,
                entry.loot_entry_id,
                cosmetic_id,
            )
            raise CosmeticNotFound(cosmetic_id)

        logger.info(
            "loot_drop player_id=%s loot_table_id=%s cosmetic_id=%s",
            player_id,
            table.loot_table_id,
            cosmetic_id,
        )
        return cosmetic


# ---------------------------------------------------------------------------
# Admin CRUD
# ---------------------------------------------------------------------------

def _drop_chance(value: Any) -> float:
    try:
        chance = float(value)
    except (TypeError, ValueError):
        raise InvalidLootConfig("drop_chance must be a number") from None
    if not 0.0 <= chance <= 1.0:
        raise InvalidLootConfig("drop_chance must be between 0.0 and 1.0")
    return chance


def _entry_numbers(weight: Any, min_quantity: Any, max_quantity: Any):
    try:
        weight, min_quantity, max_quantity = int(weight), int(min_quantity), int(max_quantity)
    except (TypeError, ValueError):
        raise InvalidLootConfig("weight and quantities must be integers") from None
    if weight <= 0:
        raise InvalidLootConfig("weight must be positive")
    if min_quantity < 1:
        raise InvalidLootConfig("min_quantity must be at least 1")
    if max_quantity < min_quantity:
        raise InvalidLootConfig("max_quantity must be >= min_quantity")
    return weight, min_quantity, max_quantity


def _is_active(value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidLootConfig("is_active must be a boolean")
    return value


def _existing_cosmetic_id(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidLootConfig("cosmetic_id must be a positive integer")
    if db.session.get(CosmeticItem, value) is None:
        raise InvalidLootConfig(f"cosmetic {value} does not exist")
    return value


def _commit():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def create_loot_table(
    *, name: str, drop_chance: Any, description: Optional[str] = None, is_active: bool = True
) -> LootTable:
    name = (name or "").strip()
    if not name:
        raise InvalidLootConfig("name is required")
    table = LootTable(
        name=name,
        description=description,
        drop_chance=_drop_chance(drop_chance),
        is_active=_is_active(is_active),
    )
    db.session.add(table)
    _commit()
    logger.info("loot_table created loot_table_id=%s name=%s", table.loot_table_id, table.name)
    return table


def get_loot_table(loot_table_id: int) -> LootTable:
    table = db.session.get(LootTable, loot_table_id)
    if table is None:
        raise LootTableNotFound(loot_table_id)
    return table


def list_loot_tables() -> List[LootTable]:
    return list(db.session.scalars(sa.select(LootTable).order_by(LootTable.loot_table_id)))


def update_loot_table(loot_table_id: int, **changes: Any) -> LootTable:
    table = get_loot_table(loot_table_id)
    name = (changes.get("name", table.name) or "").strip()
    if not name:
        raise InvalidLootConfig("name is required")
    drop_chance = _drop_chance(changes.get("drop_chance", table.drop_chance))
    is_active = _is_active(changes.get("is_active", table.is_active))
    table.name, table.drop_chance, table.is_active = name, drop_chance, is_active
    if "description" in changes:
        table.description = changes["description"]
    _commit()
    return table


def delete_loot_table(loot_table_id: int) -> None:
    table = get_loot_table(loot_table_id)
    db.session.delete(table)
    _commit()
    logger.info("loot_table deleted loot_table_id=%s", loot_table_id)


def create_loot_table_entry(
    loot_table_id: int, *, cosmetic_id: Any, weight: Any, min_quantity: Any = 1, max_quantity: Any = 1
) -> LootTableEntry:
    get_loot_table(loot_table_id)
    weight, min_quantity, max_quantity = _entry_numbers(weight, min_quantity, max_quantity)
    cosmetic_id = _existing_cosmetic_id(cosmetic_id)
    entry = LootTableEntry(
        loot_table_id=loot_table_id,
        cosmetic_id=cosmetic_id,
        weight=weight,
        min_quantity=min_quantity,
        max_quantity=max_quantity,
    )
    db.session.add(entry)
    _commit()
    return entry


def get_loot_table_entry(loot_entry_id: int) -> LootTableEntry:
    entry = db.session.get(LootTableEntry, loot_entry_id)
    if entry is None:
        raise LootEntryNotFound(loot_entry_id)
    return entry


def list_loot_table_entries(loot_table_id: int) -> List[Dict[str, Any]]:
    """Entries of a table joined with the cosmetic they grant."""
    get_loot_table(loot_table_id)
    rows = db.session.execute(
        sa.select(LootTableEntry, CosmeticItem)
        .join(CosmeticItem, LootTableEntry.cosmetic_id == CosmeticItem.cosmetic_id)
        .where(LootTableEntry.loot_table_id == loot_table_id)
        .order_by(LootTableEntry.loot_entry_id)
    ).all()
    out = []
    for entry, cosmetic in rows:
        data = entry.to_dict()
        data["cosmetic"] = {
            "name": cosmetic.name,
            "slot": cosmetic.slot,
            "rarity": cosmetic.rarity,
        }
        out.append(data)
    return out


def update_loot_table_entry(loot_entry_id: int, **changes: Any) -> LootTableEntry:
    entry = get_loot_table_entry(loot_entry_id)
    loot_table_id = entry.loot_table_id
    if "loot_table_id" in changes:
        try:
            loot_table_id = int(changes["loot_table_id"])
        except (TypeError, ValueError):
            raise InvalidLootConfig("loot_table_id must be an integer") from None
        get_loot_table(loot_table_id)
    cosmetic_id = _existing_cosmetic_id(changes.get("cosmetic_id", entry.cosmetic_id))
    weight, min_quantity, max_quantity = _entry_numbers(
        changes.get("weight", entry.weight),
        changes.get("min_quantity", entry.min_quantity),
        changes.get("max_quantity", entry.max_quantity),
    )
    entry.loot_table_id, entry.cosmetic_id = loot_table_id, cosmetic_id
    entry.weight, entry.min_quantity, entry.max_quantity = weight, min_quantity, max_quantity
    _commit()
    return entry


def delete_loot_table_entry(loot_entry_id: int) -> None:
    entry = get_loot_table_entry(loot_entry_id)
    db.session.delete(entry)
    _commit()
