"""Player accounts, refresh sessions, profile and settings."""
from __future__ import annotations

import datetime as dt
import logging
import re
import secrets
from typing import Any, Dict, Optional, Tuple

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from ..models import db, Player, PlayerProgression, PlayerSettings, Session, utcnow
from .store import is_unique_violation

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_RE = re.compile(r"^[a-z0-9_]{3,32}$", re.I)
MIN_PASSWORD_LEN = 8


class AccountError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class InvalidAccountData(AccountError):
    def __init__(self, message: str):
        super().__init__("invalid_request", message)


class DuplicateUsername(AccountError):
    def __init__(self):
        super().__init__("duplicate_username", "Username already taken.")


class DuplicateEmail(AccountError):
    def __init__(self):
        super().__init__("duplicate_email", "Email already registered.")


class InvalidCredentials(AccountError):
    def __init__(self):
        super().__init__("invalid_credentials", "Invalid username or password.")


class PlayerBanned(AccountError):
    def __init__(self, reason: Optional[str] = None):
        super().__init__("player_banned", "Account is banned.")
        self.reason = reason


class PlayerNotFound(AccountError):
    def __init__(self):
        super().__init__("player_not_found", "Player not found.")


class InvalidRefreshToken(AccountError):
    def __init__(self):
        super().__init__("invalid_refresh_token", "Invalid or expired refresh token.")


def _clean_username(value: Any) -> str:
    username = (value or "").strip()
    if not USERNAME_RE.match(username):
        raise InvalidAccountData("Username must be 3-32 letters, digits, underscores.")
    return username


def _clean_email(value: Any) -> str:
    email = (value or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise InvalidAccountData("Invalid email.")
    return email


def _duplicate_error(exc: IntegrityError) -> AccountError:
    text = str(exc.orig)
    if "players.email" in text:
        return DuplicateEmail()
    return DuplicateUsername()


def register_player(*, username: Any, email: Any, password: Any) -> Player:
    username = _clean_username(username)
    email = _clean_email(email)
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LEN:
        raise InvalidAccountData(f"Password must be at least {MIN_PASSWORD_LEN} characters.")

    player = Player(username=username, email=email, password_hash=generate_password_hash(password))
    db.session.add(player)
    try:
        db.session.flush()
        db.session.add(PlayerProgression(player_id=player.player_id))
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if is_unique_violation(exc):
            raise _duplicate_error(exc) from exc
        raise
    logger.info("player registered player_id=%s username=%s", player.player_id, player.username)
    return player


def get_player(player_id: int) -> Player:
    player = db.session.get(Player, player_id)
    if player is None:
        raise PlayerNotFound()
    return player


def authenticate(username_or_email: Any, password: Any) -> Player:
    ident = (username_or_email or "").strip()
    if not ident or not isinstance(password, str):
        raise InvalidCredentials()
    player = db.session.scalars(
        sa.select(Player).where(sa.or_(Player.username == ident, Player.email == ident.lower()))
    ).first()
    if player is None:
        logger.debug("login for unknown account ident=%s", ident)
        raise InvalidCredentials()
    if player.ban_active(utcnow()):
        raise PlayerBanned(player.banned_reason)
    if not check_password_hash(player.password_hash, password):
        raise InvalidCredentials()
    player.last_login_at = utcnow()
    db.session.commit()
    return player


# ---- refresh sessions ----

def _refresh_ttl() -> dt.timedelta:
    return dt.timedelta(seconds=int(current_app.config.get("REFRESH_TOKEN_TTL", 7 * 86400)))


def create_session(player_id: int, ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> str:
    token = secrets.token_urlsafe(48)
    db.session.add(
        Session(
            player_id=player_id,
            token=token,
            expires_at=utcnow() + _refresh_ttl(),
            ip_address=ip_address or None,
            user_agent=(user_agent or None) and user_agent[:255],
        )
    )
    db.session.commit()
    return token


def delete_session(token: str) -> bool:
    result = db.session.execute(
        sa.delete(Session).where(Session.token == token).execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount > 0


def refresh_session(
    old_token: str, ip_address: Optional[str] = None, user_agent: Optional[str] = None
) -> Tuple[int, str]:
    """Rotate a refresh token. The old token is consumed either way."""
    if not old_token:
        raise InvalidRefreshToken()
    session = db.session.scalars(sa.select(Session).where(Session.token == old_token)).first()
    if session is None:
        raise InvalidRefreshToken()
    player_id = session.player_id
    expired = session.expires_at < utcnow()
    # the delete doubles as the single-use guard under concurrent refreshes
    if not delete_session(old_token) or expired:
        raise InvalidRefreshToken()
    return player_id, create_session(player_id, ip_address, user_agent)


# ---- profile & settings ----

def profile_dict(player: Player) -> Dict[str, Any]:
    return {
        "player_id": player.player_id,
        "username": player.username,
        "email": player.email,
        "created_at": player.created_at.isoformat() if player.created_at else None,
        "last_login_at": player.last_login_at.isoformat() if player.last_login_at else None,
        "is_admin": bool(player.is_admin),
    }


def update_profile(player_id: int, *, username: Any = None, email: Any = None) -> Player:
    player = get_player(player_id)
    username = _clean_username(username) if username is not None else player.username
    email = _clean_email(email) if email is not None else player.email
    player.username, player.email = username, email
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if is_unique_violation(exc):
            raise _duplicate_error(exc) from exc
        raise
    return player


def _settings_dict(player_id: int, row: Optional[PlayerSettings]) -> Dict[str, Any]:
    return {
        "player_id": player_id,
        "key_bindings": row.key_bindings if row else None,
        "mouse_sensitivity": row.mouse_sensitivity if row else None,
        "ui_scale": row.ui_scale if row else None,
        "color_blind_mode": bool(row.color_blind_mode) if row else False,
        "subtitles_enabled": bool(row.subtitles_enabled) if row else False,
    }


def get_settings(player_id: int) -> Dict[str, Any]:
    return _settings_dict(player_id, db.session.get(PlayerSettings, player_id))


def update_settings(player_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    row = db.session.get(PlayerSettings, player_id)
    if row is None:
        row = PlayerSettings(player_id=player_id)
        db.session.add(row)
    for field in ("mouse_sensitivity", "ui_scale"):
        if field in data and data[field] is not None:
            try:
                value = float(data[field])
            except (TypeError, ValueError):
                db.session.rollback()
                raise InvalidAccountData(f"{field} must be a number.") from None
            if value <= 0:
                db.session.rollback()
                raise InvalidAccountData(f"{field} must be positive.")
            setattr(row, field, value)
    if "key_bindings" in data:
        if data["key_bindings"] is not None and not isinstance(data["key_bindings"], dict):
            db.session.rollback()
            raise InvalidAccountData("key_bindings must be an object.")
        row.key_bindings = data["key_bindings"]
    for field in ("color_blind_mode", "subtitles_enabled"):
        if field in data:
            setattr(row, field, bool(data[field]))
    db.session.commit()
    return _settings_dict(player_id, row)
