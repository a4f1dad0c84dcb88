"""SQLAlchemy-backed persistence for the loot engine and join-token authority.

Every write commits on success and rolls the session back before re-raising
on failure. ``grant_cosmetic`` and ``mark_token_used`` report their outcome as
a boolean so callers never need a read-then-write pair.
"""
from __future__ import annotations

import datetime as dt
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from ..models import (
    db,
    CosmeticItem,
    JoinToken,
    LootTable,
    LootTableEntry,
    PlayerCosmetic,
)

_UNIQUE_ERRORNAMES = {"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"}


class DuplicateKey(Exception):
    """A unique key the caller chose already exists."""


def is_unique_violation(exc: IntegrityError) -> bool:
    """True only for unique/primary-key violations, not FK or CHECK failures."""
    orig = getattr(exc, "orig", None)
    name = getattr(orig, "sqlite_errorname", None)
    if name is not None:
        return name in _UNIQUE_ERRORNAMES
    text = str(orig or exc)
    return "UNIQUE constraint failed" in text or "duplicate key" in text


class SqlStore:
    """Persistence operations used by the loot and join-token cores."""

    # ---- loot ----
    def list_active_loot_tables(self) -> List[LootTable]:
        stmt = (
            sa.select(LootTable)
            .where(LootTable.is_active.is_(True))
            .order_by(LootTable.loot_table_id)
        )
        return list(db.session.scalars(stmt))

    def get_loot_table_entries(self, loot_table_id: int) -> List[LootTableEntry]:
        stmt = (
            sa.select(LootTableEntry)
            .where(LootTableEntry.loot_table_id == loot_table_id)
            .order_by(LootTableEntry.loot_entry_id)
        )
        return list(db.session.scalars(stmt))

    def get_cosmetic_item(self, cosmetic_id: int) -> Optional[CosmeticItem]:
        return db.session.get(CosmeticItem, cosmetic_id)

    def grant_cosmetic(self, player_id: int, cosmetic_id: int, via: str) -> bool:
        """Insert an ownership row. Returns False when the player already owns it.

        Pending changes in the session are discarded when the insert hits the
        unique key, so callers grant before making other edits.
        """
        stmt = sa.insert(PlayerCosmetic).values(
            player_id=player_id, cosmetic_id=cosmetic_id, unlocked_via=via
        )
        try:
            db.session.execute(stmt)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if is_unique_violation(exc):
                return False
            raise
        return True

    # ---- join tokens ----
    def create_join_token(
        self, token: str, player_id: int, server_id: int, expires_at: dt.datetime
    ) -> JoinToken:
        row = JoinToken(token=token, player_id=player_id, server_id=server_id, expires_at=expires_at)
        db.session.add(row)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if is_unique_violation(exc):
                raise DuplicateKey(token) from exc
            raise
        return row

    def get_join_token(self, token: str) -> Optional[JoinToken]:
        return db.session.scalars(sa.select(JoinToken).where(JoinToken.token == token)).first()

    def mark_token_used(self, token: str, now: dt.datetime) -> bool:
        """Compare-and-set ``used_at``; True only for the caller that set it."""
        stmt = (
            sa.update(JoinToken)
            .where(JoinToken.token == token, JoinToken.used_at.is_(None))
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.session.execute(stmt)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result.rowcount == 1

    def delete_expired_or_used_tokens(self, now: dt.datetime) -> int:
        stmt = (
            sa.delete(JoinToken)
            .where(sa.or_(JoinToken.expires_at < now, JoinToken.used_at.is_not(None)))
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.session.execute(stmt)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result.rowcount
