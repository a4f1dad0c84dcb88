"""Levels, data currency, prestige and cosmetic ownership.

Level is derived from total experience: ``xp // BASE_XP_PER_LEVEL + 1``.
Currency changes always write a ``currency_transactions`` ledger row holding
the balance after the change.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..models import (
    db,
    CosmeticItem,
    CurrencyTransaction,
    Loadout,
    LoadoutCosmetic,
    PlayerCosmetic,
    PlayerProgression,
)
from ..models.cosmetics import RARITY_ORDER
from ..models.players import TRANSACTION_TYPES
from .store import SqlStore, is_unique_violation

logger = logging.getLogger(__name__)

MATCH_BASE_XP = 100
XP_PER_KILL = 10
XP_PER_WAVE = 50
XP_PER_SCRAP = 1


class ProgressionError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class CosmeticNotFound(ProgressionError):
    def __init__(self):
        super().__init__("cosmetic_not_found", "Cosmetic not found")


class CosmeticNotOwned(ProgressionError):
    def __init__(self):
        super().__init__("cosmetic_not_owned", "Cosmetic not owned")


class CosmeticAlreadyOwned(ProgressionError):
    def __init__(self):
        super().__init__("cosmetic_already_owned", "Cosmetic already owned")


class CosmeticNotPurchasable(ProgressionError):
    def __init__(self):
        super().__init__("cosmetic_not_purchasable", "Cosmetic is only available through prestige")


class InsufficientCurrency(ProgressionError):
    def __init__(self):
        super().__init__("insufficient_currency", "Insufficient data currency")


class LevelTooLow(ProgressionError):
    def __init__(self, required: int):
        super().__init__("level_too_low", f"Requires level {required}")
        self.required = required


class InvalidMatchStats(ProgressionError):
    def __init__(self):
        super().__init__("invalid_match_stats", "Match stats cannot be negative")


def level_for_xp(xp: int, base: Optional[int] = None) -> int:
    if base is None:
        base = int(current_app.config.get("BASE_XP_PER_LEVEL", 1000))
    if base <= 0:
        base = 1000
    if xp <= 0:
        return 1
    return max(1, xp // base + 1)


def get_progression(player_id: int) -> PlayerProgression:
    """Return the progression row, creating the default one on first access."""
    prog = db.session.get(PlayerProgression, player_id)
    if prog is None:
        prog = PlayerProgression(
            player_id=player_id,
            level=1,
            experience=0,
            prestige_level=0,
            data_currency=0,
            total_matches_played=0,
            total_waves_survived=0,
            total_kills=0,
            total_deaths=0,
            total_scrap_earned=0,
            total_data_earned=0,
        )
        db.session.add(prog)
        db.session.flush()
    return prog


def progression_dict(prog: PlayerProgression) -> Dict[str, Any]:
    return {
        "player_id": prog.player_id,
        "level": prog.level,
        "experience": prog.experience,
        "prestige_level": prog.prestige_level,
        "data_currency": prog.data_currency,
        "total_matches_played": prog.total_matches_played,
        "total_waves_survived": prog.total_waves_survived,
        "total_kills": prog.total_kills,
        "total_deaths": prog.total_deaths,
        "total_scrap_earned": prog.total_scrap_earned,
        "total_data_earned": prog.total_data_earned,
        "updated_at": prog.updated_at.isoformat() if prog.updated_at else None,
    }


def _apply_experience(prog: PlayerProgression, xp_gain: int) -> bool:
    """Add xp in-session; returns True when the player leveled up."""
    if xp_gain <= 0:
        return False
    prog.experience += xp_gain
    new_level = level_for_xp(prog.experience)
    if new_level > prog.level:
        prog.level = new_level
        return True
    return False


def _ledger(player_id: int, amount: int, balance_after: int, transaction_type: str, reference_id=None):
    if transaction_type not in TRANSACTION_TYPES:
        raise ValueError(f"unknown transaction type {transaction_type!r}")
    db.session.add(
        CurrencyTransaction(
            player_id=player_id,
            amount=amount,
            balance_after=balance_after,
            transaction_type=transaction_type,
            reference_id=reference_id,
        )
    )


def add_experience(player_id: int, xp_gain: int) -> PlayerProgression:
    prog = get_progression(player_id)
    if _apply_experience(prog, int(xp_gain)):
        logger.info("player leveled up player_id=%s level=%s", player_id, prog.level)
    db.session.commit()
    return prog


def match_xp(kills: int, waves_survived: int, scrap_earned: int) -> int:
    return MATCH_BASE_XP + kills * XP_PER_KILL + waves_survived * XP_PER_WAVE + scrap_earned * XP_PER_SCRAP


def apply_match_rewards(
    player_id: int,
    *,
    kills: int,
    deaths: int,
    waves_survived: int,
    scrap_earned: int,
    data_earned: int,
    match_id: Optional[int] = None,
) -> PlayerProgression:
    """Accumulate one match's stats and rewards without committing."""
    if min(kills, deaths, waves_survived, scrap_earned, data_earned) < 0:
        raise InvalidMatchStats()
    prog = get_progression(player_id)
    prog.total_matches_played += 1
    prog.total_waves_survived += waves_survived
    prog.total_kills += kills
    prog.total_deaths += deaths
    prog.total_scrap_earned += scrap_earned
    prog.total_data_earned += data_earned
    _apply_experience(prog, match_xp(kills, waves_survived, scrap_earned))
    if data_earned > 0:
        prog.data_currency += data_earned
        _ledger(player_id, data_earned, prog.data_currency, "match_reward", match_id)
    return prog


def add_data_currency(
    player_id: int, amount: int, transaction_type: str = "admin_grant", reference_id: Optional[int] = None
) -> int:
    """Credit (or debit) data currency and return the new balance."""
    prog = get_progression(player_id)
    if amount == 0:
        return prog.data_currency
    try:
        prog.data_currency += int(amount)
        _ledger(player_id, int(amount), prog.data_currency, transaction_type, reference_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return prog.data_currency


def prestige(player_id: int, store: Optional[SqlStore] = None) -> Dict[str, Any]:
    """Reset level and xp, bump prestige, then grant newly unlocked prestige cosmetics."""
    store = store or SqlStore()
    prog = get_progression(player_id)
    prog.level = 1
    prog.experience = 0
    prog.prestige_level += 1
    new_prestige = prog.prestige_level
    db.session.commit()

    owned = sa.select(PlayerCosmetic.cosmetic_id).where(PlayerCosmetic.player_id == player_id)
    candidates = list(
        db.session.scalars(
            sa.select(CosmeticItem.cosmetic_id)
            .where(
                CosmeticItem.is_prestige_only.is_(True),
                CosmeticItem.unlock_level <= new_prestige,
                CosmeticItem.cosmetic_id.not_in(owned),
            )
            .order_by(CosmeticItem.cosmetic_id)
        )
    )
    granted = [cid for cid in candidates if store.grant_cosmetic(player_id, cid, "prestige")]
    logger.info(
        "player prestiged player_id=%s prestige_level=%s granted=%s", player_id, new_prestige, granted
    )
    return {"prestige_level": new_prestige, "granted_cosmetic_ids": granted}


# ---- cosmetics ----

def cosmetic_catalog() -> List[CosmeticItem]:
    rarity_rank = sa.case({r: i for i, r in enumerate(RARITY_ORDER)}, value=CosmeticItem.rarity)
    return list(
        db.session.scalars(sa.select(CosmeticItem).order_by(rarity_rank, CosmeticItem.name, CosmeticItem.cosmetic_id))
    )


def owned_cosmetics(player_id: int) -> List[Dict[str, Any]]:
    rows = db.session.execute(
        sa.select(PlayerCosmetic, CosmeticItem)
        .join(CosmeticItem, PlayerCosmetic.cosmetic_id == CosmeticItem.cosmetic_id)
        .where(PlayerCosmetic.player_id == player_id)
        .order_by(PlayerCosmetic.unlocked_at, CosmeticItem.cosmetic_id)
    ).all()
    out = []
    for pc, item in rows:
        data = item.to_dict()
        data["unlocked_via"] = pc.unlocked_via
        data["unlocked_at"] = pc.unlocked_at.isoformat() if pc.unlocked_at else None
        out.append(data)
    return out


def purchase_cosmetic(player_id: int, cosmetic_id: int) -> int:
    """Buy a cosmetic with data currency; returns the balance afterwards."""
    item = db.session.get(CosmeticItem, cosmetic_id)
    if item is None:
        raise CosmeticNotFound()
    if item.is_prestige_only:
        raise CosmeticNotPurchasable()
    if db.session.get(PlayerCosmetic, (player_id, cosmetic_id)) is not None:
        raise CosmeticAlreadyOwned()
    prog = get_progression(player_id)
    if prog.level < item.unlock_level:
        raise LevelTooLow(item.unlock_level)

    cost = item.data_cost
    try:
        db.session.execute(
            sa.insert(PlayerCosmetic).values(player_id=player_id, cosmetic_id=cosmetic_id, unlocked_via="purchase")
        )
        # conditional debit; concurrent purchases cannot overdraw
        debit = db.session.execute(
            sa.update(PlayerProgression)
            .where(PlayerProgression.player_id == player_id, PlayerProgression.data_currency >= cost)
            .values(data_currency=PlayerProgression.data_currency - cost)
            .execution_options(synchronize_session=False)
        )
        if debit.rowcount != 1:
            db.session.rollback()
            raise InsufficientCurrency()
        balance = db.session.scalar(
            sa.select(PlayerProgression.data_currency).where(PlayerProgression.player_id == player_id)
        )
        _ledger(player_id, -cost, balance, "purchase", cosmetic_id)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if is_unique_violation(exc):
            raise CosmeticAlreadyOwned() from exc
        raise
    logger.info("cosmetic purchased player_id=%s cosmetic_id=%s cost=%s", player_id, cosmetic_id, cost)
    return balance


def _active_loadout(player_id: int) -> Loadout:
    loadout = db.session.scalars(
        sa.select(Loadout).where(Loadout.player_id == player_id, Loadout.is_active.is_(True))
    ).first()
    if loadout is None:
        loadout = Loadout(player_id=player_id, name="Default", is_active=True)
        db.session.add(loadout)
        db.session.flush()
    return loadout


def loadout_dict(loadout: Loadout) -> Dict[str, Any]:
    return {
        "loadout_id": loadout.loadout_id,
        "name": loadout.name,
        "equipped": {lc.slot: lc.cosmetic_id for lc in loadout.cosmetics},
    }


def equip_cosmetic(player_id: int, cosmetic_id: int) -> Dict[str, Any]:
    """Put an owned cosmetic into its slot, replacing whatever was there."""
    item = db.session.get(CosmeticItem, cosmetic_id)
    if item is None:
        raise CosmeticNotFound()
    if db.session.get(PlayerCosmetic, (player_id, cosmetic_id)) is None:
        raise CosmeticNotOwned()
    try:
        loadout = _active_loadout(player_id)
        for lc in list(loadout.cosmetics):
            if lc.slot == item.slot:
                loadout.cosmetics.remove(lc)
        db.session.flush()
        loadout.cosmetics.append(LoadoutCosmetic(cosmetic_id=cosmetic_id, slot=item.slot))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("cosmetic equipped player_id=%s cosmetic_id=%s slot=%s", player_id, cosmetic_id, item.slot)
    return loadout_dict(loadout)
