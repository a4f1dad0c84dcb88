"""Game-server registry, heartbeats and player favorites."""
from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, List, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from ..models import db, Server, ServerFavorite, utcnow
from .store import is_unique_violation

logger = logging.getLogger(__name__)


class ServerError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class ServerNotFound(ServerError):
    def __init__(self):
        super().__init__("server_not_found", "Server not found")


class ServerOffline(ServerError):
    def __init__(self):
        super().__init__("server_offline", "Server is not online")


class InvalidServerData(ServerError):
    def __init__(self, message: str):
        super().__init__("invalid_request", message)


class FavoriteAlreadyExists(ServerError):
    def __init__(self):
        super().__init__("favorite_exists", "Server already favorited")


class FavoriteNotFound(ServerError):
    def __init__(self):
        super().__init__("favorite_not_found", "Favorite not found")


def _positive_int(value: Any, field: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidServerData(f"{field} must be an integer") from None
    if number <= 0:
        raise InvalidServerData(f"{field} must be positive")
    return number


def register_server(
    *,
    ip_address: Any,
    port: Any,
    name: Any,
    max_players: Any,
    map_rotation: Optional[str] = None,
    region: Optional[str] = None,
    version: Optional[str] = None,
) -> Tuple[Server, str]:
    """Create a server row. The auth token is returned once and never listed."""
    ip_address = (ip_address or "").strip()
    name = (name or "").strip()
    if not ip_address or not name:
        raise InvalidServerData("Missing or invalid required fields (ip_address, port, name, max_players)")
    port = _positive_int(port, "port")
    max_players = _positive_int(max_players, "max_players")

    auth_token = secrets.token_hex(32)
    server = Server(
        ip_address=ip_address,
        port=port,
        name=name,
        max_players=max_players,
        map_rotation=map_rotation,
        region=region,
        version=version,
        auth_token=auth_token,
    )
    db.session.add(server)
    db.session.commit()
    logger.info("server registered server_id=%s name=%s region=%s", server.server_id, name, region)
    return server, auth_token


def get_server(server_id: int) -> Server:
    server = db.session.get(Server, server_id)
    if server is None:
        raise ServerNotFound()
    return server


def get_server_by_auth_token(auth_token: str) -> Optional[Server]:
    if not auth_token:
        return None
    return db.session.scalars(sa.select(Server).where(Server.auth_token == auth_token)).first()


def update_heartbeat(server_id: int, current_players: Any, map_rotation: Optional[str] = None) -> Server:
    try:
        current_players = int(current_players)
    except (TypeError, ValueError):
        raise InvalidServerData("current_players must be an integer") from None
    if current_players < 0:
        raise InvalidServerData("current_players cannot be negative")
    server = get_server(server_id)
    server.current_players = current_players
    server.map_rotation = map_rotation
    server.is_online = True
    server.last_heartbeat = utcnow()
    db.session.commit()
    return server


def list_active_servers(
    *,
    region: Optional[str] = None,
    map_rotation: Optional[str] = None,
    version: Optional[str] = None,
    min_players: Optional[int] = None,
    max_players: Optional[int] = None,
) -> List[Server]:
    stmt = sa.select(Server).where(Server.is_online.is_(True))
    if region is not None:
        stmt = stmt.where(Server.region == region)
    if map_rotation is not None:
        stmt = stmt.where(Server.map_rotation == map_rotation)
    if version is not None:
        stmt = stmt.where(Server.version == version)
    if min_players is not None:
        stmt = stmt.where(Server.current_players >= min_players)
    if max_players is not None:
        stmt = stmt.where(Server.current_players <= max_players)
    return list(db.session.scalars(stmt.order_by(Server.server_id)))


# ---- favorites ----

def add_favorite(player_id: int, server_id: int, note: Optional[str] = None) -> ServerFavorite:
    get_server(server_id)
    if db.session.get(ServerFavorite, (player_id, server_id)) is not None:
        raise FavoriteAlreadyExists()
    fav = ServerFavorite(player_id=player_id, server_id=server_id, note=note)
    db.session.add(fav)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if is_unique_violation(exc):
            raise FavoriteAlreadyExists() from exc
        raise
    logger.debug("favorite added player_id=%s server_id=%s", player_id, server_id)
    return fav


def remove_favorite(player_id: int, server_id: int) -> None:
    fav = db.session.get(ServerFavorite, (player_id, server_id))
    if fav is None:
        raise FavoriteNotFound()
    db.session.delete(fav)
    db.session.commit()
    logger.debug("favorite removed player_id=%s server_id=%s", player_id, server_id)


def list_favorites(player_id: int) -> List[Dict[str, Any]]:
    rows = db.session.execute(
        sa.select(ServerFavorite, Server)
        .join(Server, ServerFavorite.server_id == Server.server_id)
        .where(ServerFavorite.player_id == player_id)
        .order_by(ServerFavorite.added_at.desc(), Server.server_id)
    ).all()
    out = []
    for fav, server in rows:
        data = server.to_dict()
        data["note"] = fav.note
        data["added_at"] = fav.added_at.isoformat() if fav.added_at else None
        out.append(data)
    return out
