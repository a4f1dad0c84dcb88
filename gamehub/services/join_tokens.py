"""Single-use join tokens admitting a player to a game server.

Lifecycle: ``issued`` -> ``used`` (stored ``used_at``) or ``expired``
(computed, ``now > expires_at``). Validation is read-only so a game server can
check eligibility speculatively; consumption is a separate compare-and-set.
"""
from __future__ import annotations

import datetime as dt
import logging
import secrets
from typing import Callable, Optional, Tuple

from ..models import JoinToken, utcnow
from .store import DuplicateKey, SqlStore

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
ISSUE_ATTEMPTS = 3


class JoinTokenError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class TokenNotFound(JoinTokenError):
    def __init__(self):
        super().__init__("not_found", "Join token invalid")


class TokenExpired(JoinTokenError):
    def __init__(self):
        super().__init__("expired", "Join token expired")


class TokenAlreadyUsed(JoinTokenError):
    def __init__(self):
        super().__init__("already_used", "Join token already used")


class TokenWrongServer(JoinTokenError):
    def __init__(self):
        super().__init__("wrong_server", "Join token is bound to another server")


def _redact(token: str) -> str:
    return f"{token[:8]}..."


class JoinTokenAuthority:
    def __init__(
        self,
        store: Optional[SqlStore] = None,
        clock: Callable[[], dt.datetime] = utcnow,
        token_factory: Callable[[], str] = lambda: secrets.token_hex(TOKEN_BYTES),
    ):
        self.store = store or SqlStore()
        self.clock = clock
        self.token_factory = token_factory

    def issue(self, player_id: int, server_id: int, ttl: dt.timedelta) -> JoinToken:
        expires_at = self.clock() + ttl
        for attempt in range(1, ISSUE_ATTEMPTS + 1):
            token = self.token_factory()
            try:
                row = self.store.create_join_token(token, player_id, server_id, expires_at)
            except DuplicateKey:
                logger.warning("join token collision attempt=%s; rotating", attempt)
                continue
            logger.debug(
                "join token issued player_id=%s server_id=%s expires_at=%s token=%s",
                player_id,
                server_id,
                expires_at.isoformat(),
                _redact(token),
            )
            return row
        raise RuntimeError(f"could not issue a unique join token after {ISSUE_ATTEMPTS} attempts")

    def validate(self, token: str) -> Tuple[int, int]:
        row = self.store.get_join_token(token)
        if row is None:
            raise TokenNotFound()
        if row.is_expired(self.clock()):
            raise TokenExpired()
        if row.used_at is not None:
            raise TokenAlreadyUsed()
        return row.player_id, row.server_id

    def mark_used(self, token: str) -> bool:
        """Consume the token. Only the caller that flips ``used_at`` gets True."""
        won = self.store.mark_token_used(token, self.clock())
        if won:
            logger.debug("join token marked used token=%s", _redact(token))
        else:
            logger.debug("join token already consumed or missing token=%s", _redact(token))
        return won

    def redeem(self, token: str, server_id: Optional[int] = None) -> Tuple[int, int]:
        """Validate then consume; losers of a concurrent race get ``TokenAlreadyUsed``.

        With ``server_id`` set, a token bound elsewhere raises ``TokenWrongServer``
        and stays unconsumed.
        """
        player_id, bound_server = self.validate(token)
        if server_id is not None and bound_server != server_id:
            raise TokenWrongServer()
        if not self.mark_used(token):
            raise TokenAlreadyUsed()
        return player_id, bound_server

    def sweep(self) -> int:
        removed = self.store.delete_expired_or_used_tokens(self.clock())
        logger.info("join token sweep removed=%s", removed)
        return removed
