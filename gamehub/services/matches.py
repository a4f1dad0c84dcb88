"""Match results reported by game servers, and per-player match history."""
from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, Iterable, List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from ..models import db, Match, Player, PlayerMatchStats
from ..models.matches import MATCH_OUTCOMES
from .progression import apply_match_rewards
from .store import is_unique_violation

logger = logging.getLogger(__name__)

HISTORY_DEFAULT_LIMIT = 10
HISTORY_MAX_LIMIT = 100

STAT_FIELDS = (
    "waves_survived",
    "zombies_killed",
    "deaths",
    "scrap_earned",
    "data_earned",
    "damage_dealt",
    "damage_taken",
    "buildings_built",
    "buildings_destroyed",
    "healing_given",
    "revives",
    "score",
)


class MatchError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class InvalidMatchData(MatchError):
    def __init__(self, message: str):
        super().__init__("invalid_request", message)


def _parse_time(value: Any, field: str) -> Optional[dt.datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    else:
        try:
            parsed = dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            raise InvalidMatchData(f"{field} must be an ISO-8601 timestamp") from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return parsed


def _non_negative(data: Dict[str, Any], field: str) -> int:
    value = data.get(field, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidMatchData(f"{field} must be an integer")
    if value < 0:
        raise InvalidMatchData(f"{field} cannot be negative")
    return value


def _clean_stats(entries: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    cleaned = []
    seen = set()
    for entry in entries:
        if not isinstance(entry, dict):
            raise InvalidMatchData("player_stats entries must be objects")
        player_id = entry.get("player_id")
        if isinstance(player_id, bool) or not isinstance(player_id, int) or player_id <= 0:
            raise InvalidMatchData("player_stats.player_id must be positive")
        if player_id in seen:
            raise InvalidMatchData(f"duplicate stats for player {player_id}")
        seen.add(player_id)
        row = {"player_id": player_id}
        for field in STAT_FIELDS:
            row[field] = _non_negative(entry, field)
        cleaned.append(row)
    return cleaned


def store_match(server_id: int, data: Dict[str, Any]) -> Match:
    """Persist a match, its player stats and every participant's rewards atomically."""
    map_name = (data.get("map_name") or "").strip()
    game_mode = (data.get("game_mode") or "").strip()
    outcome = data.get("outcome")
    if not map_name:
        raise InvalidMatchData("map_name is required")
    if not game_mode:
        raise InvalidMatchData("game_mode is required")
    if outcome not in MATCH_OUTCOMES:
        raise InvalidMatchData(f"outcome must be one of {', '.join(MATCH_OUTCOMES)}")
    start_time = _parse_time(data.get("start_time"), "start_time")
    if start_time is None:
        raise InvalidMatchData("start_time is required")
    end_time = _parse_time(data.get("end_time"), "end_time")
    if end_time is not None and end_time < start_time:
        raise InvalidMatchData("end_time precedes start_time")
    total_players = _non_negative(data, "total_players")
    if total_players <= 0:
        raise InvalidMatchData("total_players must be positive")

    stats = data.get("player_stats")
    if not isinstance(stats, list) or not stats:
        raise InvalidMatchData("player_stats cannot be empty")
    stats = _clean_stats(stats)

    player_ids = [row["player_id"] for row in stats]
    known = set(db.session.scalars(sa.select(Player.player_id).where(Player.player_id.in_(player_ids))))
    missing = sorted(set(player_ids) - known)
    if missing:
        raise InvalidMatchData(f"unknown player ids: {missing}")

    match = Match(
        server_id=server_id,
        map_name=map_name,
        game_mode=game_mode,
        start_time=start_time,
        end_time=end_time,
        outcome=outcome,
        waves_survived=_non_negative(data, "waves_survived"),
        total_zombies_killed=_non_negative(data, "total_zombies_killed"),
        total_players=total_players,
    )
    try:
        db.session.add(match)
        db.session.flush()
        for row in stats:
            match.player_stats.append(PlayerMatchStats(**row))
            apply_match_rewards(
                row["player_id"],
                kills=row["zombies_killed"],
                deaths=row["deaths"],
                waves_survived=row["waves_survived"],
                scrap_earned=row["scrap_earned"],
                data_earned=row["data_earned"],
                match_id=match.match_id,
            )
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if is_unique_violation(exc):
            raise InvalidMatchData("duplicate player stats") from exc
        raise
    except Exception:
        db.session.rollback()
        raise
    logger.info(
        "match stored match_id=%s server_id=%s players=%s outcome=%s",
        match.match_id,
        server_id,
        len(stats),
        outcome,
    )
    return match


def clamp_history_limit(limit: Any) -> int:
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        return HISTORY_DEFAULT_LIMIT
    if limit <= 0:
        return HISTORY_DEFAULT_LIMIT
    return min(limit, HISTORY_MAX_LIMIT)


def match_history(player_id: int, limit: Any = HISTORY_DEFAULT_LIMIT) -> List[Dict[str, Any]]:
    rows = db.session.execute(
        sa.select(Match, PlayerMatchStats)
        .join(PlayerMatchStats, PlayerMatchStats.match_id == Match.match_id)
        .where(PlayerMatchStats.player_id == player_id)
        .order_by(Match.start_time.desc(), Match.match_id.desc())
        .limit(clamp_history_limit(limit))
    ).all()
    history = []
    for match, stats in rows:
        entry = {
            "match_id": match.match_id,
            "server_id": match.server_id,
            "map_name": match.map_name,
            "game_mode": match.game_mode,
            "start_time": match.start_time.isoformat(),
            "end_time": match.end_time.isoformat() if match.end_time else None,
            "outcome": match.outcome,
            "total_players": match.total_players,
        }
        for field in STAT_FIELDS:
            entry[field] = getattr(stats, field)
        history.append(entry)
    return history
