# gamehub/api_servers.py
import datetime as dt

from flask import Blueprint, current_app, g, jsonify, request
from flask_login import login_required

from .request_utils import json_body
from .security import current_player_id, server_auth_required
from .services.join_tokens import JoinTokenError
from .services.matches import MatchError, store_match
from .services.servers import (
    FavoriteAlreadyExists,
    FavoriteNotFound,
    InvalidServerData,
    ServerError,
    ServerNotFound,
    ServerOffline,
    add_favorite,
    get_server,
    list_active_servers,
    list_favorites,
    register_server,
    remove_favorite,
    update_heartbeat,
)

bp = Blueprint("servers_api", __name__, url_prefix="/api")

_SERVER_STATUS = {
    ServerNotFound: 404,
    FavoriteNotFound: 404,
    FavoriteAlreadyExists: 409,
    ServerOffline: 409,
    InvalidServerData: 400,
}

_JOIN_STATUS = {"not_found": 404, "expired": 410, "already_used": 409, "wrong_server": 403}


def _server_error(e: ServerError):
    status = next((s for cls, s in _SERVER_STATUS.items() if isinstance(e, cls)), 400)
    return jsonify(error=e.message, code=e.code), status


def _join_tokens():
    return current_app.extensions["join_tokens"]


def _int_arg(name):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


# ---------------- Registry ----------------
@bp.post("/servers/register")
def register():
    data = json_body()
    try:
        server, auth_token = register_server(
            ip_address=data.get("ip_address"),
            port=data.get("port"),
            name=data.get("name"),
            max_players=data.get("max_players"),
            map_rotation=data.get("map_rotation"),
            region=data.get("region"),
            version=data.get("version"),
        )
    except ServerError as e:
        return _server_error(e)
    return jsonify(server_id=server.server_id, auth_token=auth_token), 201


@bp.get("/servers")
def servers_list():
    servers = list_active_servers(
        region=request.args.get("region") or None,
        map_rotation=request.args.get("map") or None,
        version=request.args.get("version") or None,
        min_players=_int_arg("min_players"),
        max_players=_int_arg("max_players"),
    )
    return jsonify([s.to_dict() for s in servers])


@bp.put("/servers/<int:server_id>/heartbeat")
@server_auth_required
def heartbeat(server_id: int):
    data = json_body()
    try:
        server = update_heartbeat(server_id, data.get("current_players"), data.get("map_rotation"))
    except ServerError as e:
        return _server_error(e)
    return jsonify(server.to_dict())


# ---------------- Join flow ----------------
@bp.post("/servers/<int:server_id>/join")
@login_required
def join(server_id: int):
    try:
        server = get_server(server_id)
        if not server.is_online:
            raise ServerOffline()
    except ServerError as e:
        return _server_error(e)

    ttl = dt.timedelta(seconds=int(current_app.config.get("JOIN_TOKEN_TTL", 30)))
    row = _join_tokens().issue(current_player_id(), server_id, ttl)
    return jsonify(
        token=row.token,
        server_id=server_id,
        ip_address=server.ip_address,
        port=server.port,
        expires_at=row.expires_at.isoformat(),
    ), 201


@bp.post("/servers/<int:server_id>/join-tokens/<token>/validate")
@server_auth_required
def validate_join_token(server_id: int, token: str):
    try:
        player_id, _ = _join_tokens().redeem(token, server_id=g.server.server_id)
    except JoinTokenError as e:
        return jsonify(error=e.message, code=e.code), _JOIN_STATUS.get(e.code, 400)
    return jsonify(player_id=player_id, server_id=server_id, valid=True)


# ---------------- Matches ----------------
@bp.post("/servers/<int:server_id>/matches")
@server_auth_required
def report_match(server_id: int):
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        return jsonify(error="JSON object required"), 400
    try:
        match = store_match(server_id, data)
    except MatchError as e:
        return jsonify(error=e.message, code=e.code), 400
    return jsonify(match_id=match.match_id), 201


# ---------------- Favorites ----------------
@bp.get("/favorites")
@login_required
def favorites_list():
    return jsonify(list_favorites(current_player_id()))


@bp.post("/favorites")
@login_required
def favorites_add():
    data = json_body()
    server_id = data.get("server_id")
    if isinstance(server_id, bool) or not isinstance(server_id, int) or server_id <= 0:
        return jsonify(error="server_id must be a positive integer"), 400
    try:
        add_favorite(current_player_id(), server_id, data.get("note"))
    except ServerError as e:
        return _server_error(e)
    return jsonify(ok=True, server_id=server_id), 201


@bp.delete("/favorites/<int:server_id>")
@login_required
def favorites_remove(server_id: int):
    try:
        remove_favorite(current_player_id(), server_id)
    except ServerError as e:
        return _server_error(e)
    return jsonify(ok=True)
