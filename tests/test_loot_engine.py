import random
from collections import Counter
from types import SimpleNamespace

import pytest
import sqlalchemy as sa

from gamehub.models import db, PlayerCosmetic
from gamehub.services.loot import (
    CosmeticNotFound,
    EmptyTable,
    InvalidWeights,
    LootEngine,
    LootIntegrityError,
    LootUnavailable,
    NoActiveTables,
    NoDrop,
    select_weighted,
)
from conftest import make_cosmetic, make_loot_table, make_player


class FakeStore:
    """In-memory stand-in for SqlStore used to drive edge cases."""

    def __init__(self, tables=(), entries=None, cosmetics=None):
        self.tables = list(tables)
        self.entries = entries or {}
        self.cosmetics = cosmetics or {}
        self.grants = set()

    def list_active_loot_tables(self):
        return self.tables

    def get_loot_table_entries(self, loot_table_id):
        return self.entries.get(loot_table_id, [])

    def grant_cosmetic(self, player_id, cosmetic_id, via):
        key = (player_id, cosmetic_id)
        if key in self.grants:
            return False
        self.grants.add(key)
        return True

    def get_cosmetic_item(self, cosmetic_id):
        return self.cosmetics.get(cosmetic_id)


def _table(tid, chance):
    return SimpleNamespace(loot_table_id=tid, drop_chance=chance)


def _entry(eid, cosmetic_id, weight):
    return SimpleNamespace(loot_entry_id=eid, cosmetic_id=cosmetic_id, weight=weight)


def test_no_active_tables():
    engine = LootEngine(store=FakeStore(), rng=random.Random(1))
    with pytest.raises(NoActiveTables) as exc:
        engine.generate_loot_drop(7)
    assert isinstance(exc.value, LootUnavailable)
    assert exc.value.code == "no_active_tables"


def test_zero_drop_chance_never_drops():
    store = FakeStore(tables=[_table(1, 0.0), _table(2, 0.0)])
    engine = LootEngine(store=store, rng=random.Random(3))
    for _ in range(200):
        with pytest.raises(NoDrop):
            engine.generate_loot_drop(7)
    assert not store.grants


def test_first_hit_table_wins_in_order():
    cosmetic = SimpleNamespace(cosmetic_id=5)
    store = FakeStore(
        tables=[_table(1, 1.0), _table(2, 1.0)],
        entries={1: [_entry(1, 5, 1)], 2: [_entry(2, 6, 1)]},
        cosmetics={5: cosmetic},
    )
    engine = LootEngine(store=store, rng=random.Random(0))
    assert engine.generate_loot_drop(7) is cosmetic


def test_empty_table_is_unavailable():
    engine = LootEngine(store=FakeStore(tables=[_table(4, 1.0)]), rng=random.Random(0))
    with pytest.raises(EmptyTable) as exc:
        engine.generate_loot_drop(7)
    assert exc.value.code == "empty_table"


def test_zero_total_weight_is_integrity_fault():
    store = FakeStore(tables=[_table(1, 1.0)], entries={1: [_entry(1, 5, 0), _entry(2, 6, 0)]})
    engine = LootEngine(store=store, rng=random.Random(0))
    with pytest.raises(InvalidWeights) as exc:
        engine.generate_loot_drop(7)
    assert isinstance(exc.value, LootIntegrityError)
    assert not store.grants


def test_missing_cosmetic_is_integrity_fault():
    store = FakeStore(tables=[_table(1, 1.0)], entries={1: [_entry(1, 99, 10)]})
    engine = LootEngine(store=store, rng=random.Random(0))
    with pytest.raises(CosmeticNotFound) as exc:
        engine.generate_loot_drop(7)
    assert exc.value.code == "cosmetic_not_found"


def test_weighted_distribution_matches_weights():
    entries = [_entry(1, 100, 10), _entry(2, 200, 90)]
    rng = random.Random(12345)
    counts = Counter(select_weighted(entries, rng).cosmetic_id for _ in range(100_000))
    share = counts[100] / 100_000
    assert 0.09 <= share <= 0.11
    assert counts[100] + counts[200] == 100_000


def test_select_weighted_boundaries():
    entries = [_entry(1, 1, 3), _entry(2, 2, 2)]
    picks = {}
    for w in range(5):
        rng = SimpleNamespace(randrange=lambda total, w=w: w)
        picks[w] = select_weighted(entries, rng).cosmetic_id
    assert picks == {0: 1, 1: 1, 2: 1, 3: 2, 4: 2}


def test_same_seed_same_outcome():
    store = FakeStore(
        tables=[_table(1, 0.5), _table(2, 0.5)],
        entries={1: [_entry(1, 5, 1), _entry(2, 6, 3)], 2: [_entry(3, 7, 1)]},
        cosmetics={i: SimpleNamespace(cosmetic_id=i) for i in (5, 6, 7)},
    )

    def run(seed):
        engine = LootEngine(store=store, rng=random.Random(seed))
        out = []
        for _ in range(50):
            try:
                out.append(engine.generate_loot_drop(7).cosmetic_id)
            except NoDrop:
                out.append(None)
        return out

    assert run(42) == run(42)


# -------- against the database ----------
def test_drop_grants_cosmetic_end_to_end(app):
    make_player("seven", player_id=7)
    make_cosmetic("Crimson", cosmetic_id=42)
    make_loot_table([(42, 10)], loot_table_id=1, drop_chance=1.0)

    cosmetic = LootEngine(rng=random.Random(0)).generate_loot_drop(7)

    assert cosmetic.cosmetic_id == 42
    row = db.session.get(PlayerCosmetic, (7, 42))
    assert row is not None
    assert row.unlocked_via == "loot_drop"


def test_duplicate_grant_is_a_no_op(app):
    make_player("seven", player_id=7)
    make_cosmetic("Crimson", cosmetic_id=42)
    make_loot_table([(42, 10)], drop_chance=1.0)
    engine = LootEngine(rng=random.Random(0))

    first = engine.generate_loot_drop(7)
    second = engine.generate_loot_drop(7)

    assert first.cosmetic_id == second.cosmetic_id == 42
    count = db.session.scalar(
        sa.select(sa.func.count()).select_from(PlayerCosmetic).where(PlayerCosmetic.player_id == 7)
    )
    assert count == 1


def test_inactive_tables_are_ignored(app):
    make_player("seven", player_id=7)
    make_cosmetic("Crimson", cosmetic_id=42)
    make_loot_table([(42, 10)], drop_chance=1.0, is_active=False)
    with pytest.raises(NoActiveTables):
        LootEngine(rng=random.Random(0)).generate_loot_drop(7)
