"""Friend requests and friend lists.

Each relationship is a single directed row whose ``player_id`` is the
requester; accepting flips ``status`` in place rather than adding a mirror row.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import sqlalchemy as sa

from ..models import db, Friend, Player

logger = logging.getLogger(__name__)

ACTIONS = ("accept", "decline", "block")


class SocialError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class CannotFriendSelf(SocialError):
    def __init__(self):
        super().__init__("cannot_friend_self", "Cannot send a friend request to yourself")


class FriendRequestExists(SocialError):
    def __init__(self):
        super().__init__("friend_request_exists", "A friend relationship already exists")


class FriendRequestNotFound(SocialError):
    def __init__(self):
        super().__init__("friend_request_not_found", "Friend request not found")


class FriendRequestNotPending(SocialError):
    def __init__(self):
        super().__init__("friend_request_not_pending", "Friend request is not pending")


class InvalidFriendAction(SocialError):
    def __init__(self, action: Any):
        super().__init__("invalid_action", f"Unknown action {action!r}; expected accept, decline or block")


class TargetPlayerNotFound(SocialError):
    def __init__(self):
        super().__init__("player_not_found", "Player not found")


def _edge(a: int, b: int) -> Optional[Friend]:
    """Relationship row between two players in either direction."""
    return db.session.scalars(
        sa.select(Friend).where(
            sa.or_(
                sa.and_(Friend.player_id == a, Friend.friend_id == b),
                sa.and_(Friend.player_id == b, Friend.friend_id == a),
            )
        )
    ).first()


def send_friend_request(player_id: int, friend_id: int) -> Friend:
    if player_id == friend_id:
        raise CannotFriendSelf()
    if db.session.get(Player, friend_id) is None:
        raise TargetPlayerNotFound()
    if _edge(player_id, friend_id) is not None:
        raise FriendRequestExists()
    row = Friend(player_id=player_id, friend_id=friend_id, status="pending")
    db.session.add(row)
    db.session.commit()
    logger.info("friend request sent player_id=%s friend_id=%s", player_id, friend_id)
    return row


def respond_to_request(player_id: int, other_id: int, action: str) -> Optional[Friend]:
    """Apply ``action`` as ``player_id`` to the relationship with ``other_id``.

    accept/decline only work on a pending request addressed to ``player_id``;
    block works on any existing relationship or creates one. Decline deletes
    the row and returns None.
    """
    if action not in ACTIONS:
        raise InvalidFriendAction(action)
    if player_id == other_id:
        raise CannotFriendSelf()

    if action == "block":
        if db.session.get(Player, other_id) is None:
            raise TargetPlayerNotFound()
        row = _edge(player_id, other_id)
        if row is not None and row.player_id != player_id:
            # re-point the edge so the blocker owns it
            db.session.delete(row)
            db.session.flush()
            row = None
        if row is None:
            row = Friend(player_id=player_id, friend_id=other_id)
            db.session.add(row)
        row.status = "blocked"
        db.session.commit()
        logger.info("player blocked player_id=%s blocked_id=%s", player_id, other_id)
        return row

    row = db.session.get(Friend, (other_id, player_id))
    if row is None:
        raise FriendRequestNotFound()
    if row.status != "pending":
        raise FriendRequestNotPending()
    if action == "accept":
        row.status = "accepted"
        db.session.commit()
        logger.info("friend request accepted player_id=%s friend_id=%s", other_id, player_id)
        return row
    db.session.delete(row)
    db.session.commit()
    logger.info("friend request declined player_id=%s friend_id=%s", other_id, player_id)
    return None


def _summary(player: Player, since) -> Dict[str, Any]:
    return {
        "player_id": player.player_id,
        "username": player.username,
        "since": since.isoformat() if since else None,
    }


def list_friends(player_id: int) -> Dict[str, List[Dict[str, Any]]]:
    rows = db.session.scalars(
        sa.select(Friend)
        .where(sa.or_(Friend.player_id == player_id, Friend.friend_id == player_id))
        .order_by(Friend.updated_at, Friend.player_id, Friend.friend_id)
    ).all()
    others = {r.friend_id if r.player_id == player_id else r.player_id for r in rows}
    players = {
        p.player_id: p for p in db.session.scalars(sa.select(Player).where(Player.player_id.in_(others)))
    }

    out: Dict[str, List[Dict[str, Any]]] = {"friends": [], "incoming": [], "outgoing": []}
    for r in rows:
        outgoing = r.player_id == player_id
        other = players[r.friend_id if outgoing else r.player_id]
        if r.status == "accepted":
            out["friends"].append(_summary(other, r.updated_at))
        elif r.status == "pending":
            out["outgoing" if outgoing else "incoming"].append(_summary(other, r.created_at))
    return out
