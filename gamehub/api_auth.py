# gamehub/api_auth.py
from flask import Blueprint, current_app, jsonify, request

from .request_utils import json_body
from .security import issue_access_token
from .services.accounts import (
    AccountError,
    DuplicateEmail,
    DuplicateUsername,
    InvalidAccountData,
    PlayerBanned,
    authenticate,
    create_session,
    delete_session,
    refresh_session,
    register_player,
)

bp = Blueprint("auth_api", __name__, url_prefix="/api/auth")

_STATUS = {
    InvalidAccountData: 400,
    DuplicateUsername: 409,
    DuplicateEmail: 409,
    PlayerBanned: 403,
}


def _error(e: AccountError):
    status = next((s for cls, s in _STATUS.items() if isinstance(e, cls)), 401)
    body = {"error": e.message, "code": e.code}
    if isinstance(e, PlayerBanned) and e.reason:
        body["reason"] = e.reason
    return jsonify(body), status


def _token_pair(player_id: int):
    refresh = create_session(player_id, request.remote_addr, request.headers.get("User-Agent"))
    return {
        "player_id": player_id,
        "access_token": issue_access_token(player_id),
        "refresh_token": refresh,
        "token_type": "Bearer",
        "expires_in": int(current_app.config.get("ACCESS_TOKEN_TTL", 900)),
    }


@bp.post("/register")
def register():
    data = json_body()
    try:
        player = register_player(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password"),
        )
    except AccountError as e:
        return _error(e)
    body = _token_pair(player.player_id)
    body["username"] = player.username
    return jsonify(body), 201


@bp.post("/login")
def login():
    data = json_body()
    ident = data.get("username") or data.get("email")
    try:
        player = authenticate(ident, data.get("password"))
    except AccountError as e:
        return _error(e)
    body = _token_pair(player.player_id)
    body["username"] = player.username
    return jsonify(body), 200


@bp.post("/refresh")
def refresh():
    data = json_body()
    try:
        player_id, new_refresh = refresh_session(
            data.get("refresh_token") or "", request.remote_addr, request.headers.get("User-Agent")
        )
    except AccountError as e:
        return _error(e)
    return jsonify(
        player_id=player_id,
        access_token=issue_access_token(player_id),
        refresh_token=new_refresh,
        token_type="Bearer",
        expires_in=int(current_app.config.get("ACCESS_TOKEN_TTL", 900)),
    ), 200


@bp.post("/logout")
def logout():
    data = json_body()
    token = data.get("refresh_token")
    if not token:
        return jsonify(error="refresh_token required"), 400
    delete_session(token)
    return jsonify(ok=True), 200
