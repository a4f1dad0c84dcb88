"""Score leaderboards aggregated from player match stats."""
from __future__ import annotations

import datetime as dt
from typing import Any, Callable, Dict, List, Optional

import sqlalchemy as sa

from ..models import db, Match, Player, PlayerMatchStats, utcnow

LEADERBOARD_LIMIT = 100
PERIODS = ("daily", "weekly", "alltime")


def _window_start(period: str, now: dt.datetime) -> Optional[dt.datetime]:
    if period == "daily":
        return now - dt.timedelta(days=1)
    if period == "weekly":
        return now - dt.timedelta(days=7)
    if period == "alltime":
        return None
    raise ValueError(f"unknown leaderboard period {period!r}")


def leaderboard(
    period: str,
    *,
    limit: int = LEADERBOARD_LIMIT,
    clock: Callable[[], dt.datetime] = utcnow,
) -> List[Dict[str, Any]]:
    """Rank players by total score over the period's window (ties by player id)."""
    since = _window_start(period, clock())
    total_score = sa.func.sum(PlayerMatchStats.score).label("total_score")
    stmt = (
        sa.select(
            PlayerMatchStats.player_id,
            Player.username,
            total_score,
            sa.func.count(PlayerMatchStats.match_id).label("matches_played"),
            sa.func.avg(PlayerMatchStats.zombies_killed).label("avg_kills"),
            sa.func.avg(PlayerMatchStats.waves_survived).label("avg_waves"),
        )
        .join(Player, Player.player_id == PlayerMatchStats.player_id)
        .join(Match, Match.match_id == PlayerMatchStats.match_id)
        .group_by(PlayerMatchStats.player_id, Player.username)
        .order_by(total_score.desc(), PlayerMatchStats.player_id)
        .limit(limit)
    )
    if since is not None:
        stmt = stmt.where(Match.start_time >= since)

    return [
        {
            "rank": rank,
            "player_id": row.player_id,
            "username": row.username,
            "total_score": int(row.total_score or 0),
            "matches_played": int(row.matches_played),
            "avg_kills": round(float(row.avg_kills or 0), 2),
            "avg_waves": round(float(row.avg_waves or 0), 2),
        }
        for rank, row in enumerate(db.session.execute(stmt), start=1)
    ]
