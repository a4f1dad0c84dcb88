# gamehub/security.py
from __future__ import annotations

import time
from functools import wraps
from typing import Optional

from flask import current_app, g, jsonify, request
from flask_login import LoginManager, current_user, login_required
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .models import db, Player
from .services.servers import get_server_by_auth_token

login_manager = LoginManager()

ACCESS_SALT = "access-token-v1"


class TokenError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _serializer() -> URLSafeTimedSerializer:
    secret = current_app.config.get("SECRET_KEY")
    if not secret:
        raise RuntimeError("SECRET_KEY must be configured to sign access tokens.")
    return URLSafeTimedSerializer(secret_key=secret, salt=ACCESS_SALT)


def issue_access_token(player_id: int) -> str:
    """Create a signed access token. Store only minimal data."""
    payload = {
        "sub": int(player_id),
        "iat": int(time.time()),
        "typ": "access",
    }
    return _serializer().dumps(payload)


def verify_access_token(token: str) -> int:
    """Return the player id carried by a valid access token."""
    max_age = int(current_app.config.get("ACCESS_TOKEN_TTL", 900))
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        raise TokenError("token_expired", "Access token expired.") from None
    except BadSignature:
        raise TokenError("token_invalid", "Invalid access token.") from None
    if not isinstance(data, dict) or data.get("typ") != "access":
        raise TokenError("token_invalid", "Wrong token type.")
    try:
        return int(data["sub"])
    except (KeyError, TypeError, ValueError):
        raise TokenError("token_invalid", "Invalid access token.") from None


def _extract_bearer() -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


@login_manager.request_loader
def load_player_from_request(req):  # called by Flask-Login on every request
    token = _extract_bearer()
    if not token:
        return None
    try:
        player_id = verify_access_token(token)
    except TokenError as e:
        current_app.logger.debug("access token rejected: %s", e.code)
        return None
    player = db.session.get(Player, player_id)
    if player is None:
        return None
    return player


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify(error="unauthorized"), 401


def current_player_id() -> int:
    return int(current_user.player_id)


def admin_required(fn):
    """Decorator for views reserved to admin players."""
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if not getattr(current_user, "is_admin", False):
            return jsonify(error="forbidden"), 403
        return fn(*args, **kwargs)
    return wrapper


def server_auth_required(fn):
    """Views under ``/<int:server_id>/`` that only the server itself may call.

    The ``X-Server-Token`` header must resolve to the server named in the path.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        server_id = kwargs.get("server_id")
        token = request.headers.get("X-Server-Token")
        if not token:
            return jsonify(error="missing server token"), 401
        server = get_server_by_auth_token(token)
        if server is None:
            return jsonify(error="invalid server token"), 401
        if server.server_id != server_id:
            current_app.logger.debug(
                "server id mismatch token_server_id=%s path_server_id=%s", server.server_id, server_id
            )
            return jsonify(error="server token does not match server ID"), 403
        g.server = server
        return fn(*args, **kwargs)
    return wrapper
