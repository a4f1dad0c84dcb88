from .base import db, Model, utcnow


class Server(Model):
    __tablename__ = "servers"

    server_id = db.Column(db.Integer, primary_key=True)
    ip_address = db.Column(db.String(64), nullable=False)
    port = db.Column(db.Integer, nullable=False)
    auth_token = db.Column(db.String(128), unique=True, index=True)
    name = db.Column(db.String(128), nullable=False)
    map_rotation = db.Column(db.String(255))
    max_players = db.Column(db.Integer, nullable=False)
    current_players = db.Column(db.Integer, nullable=False, default=0)
    is_online = db.Column(db.Boolean, nullable=False, default=False)
    last_heartbeat = db.Column(db.DateTime)
    region = db.Column(db.String(32))
    version = db.Column(db.String(32))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "server_id": self.server_id,
            "ip_address": self.ip_address,
            "port": self.port,
            "name": self.name,
            "map_rotation": self.map_rotation,
            "max_players": self.max_players,
            "current_players": self.current_players,
            "is_online": bool(self.is_online),
            "last_heartbeat": self.last_heartbeat.isoformat() if self.last_heartbeat else None,
            "region": self.region,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class JoinToken(Model):
    """Single-use admission credential binding a player to a server."""

    __tablename__ = "join_tokens"

    join_token_id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(128), unique=True, nullable=False, index=True)
    player_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False, index=True
    )
    server_id = db.Column(
        db.Integer, db.ForeignKey("servers.server_id", ondelete="CASCADE"), nullable=False, index=True
    )
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    used_at = db.Column(db.DateTime)

    def is_expired(self, now) -> bool:
        return now > self.expires_at


class ServerFavorite(Model):
    __tablename__ = "server_favorites"

    player_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), primary_key=True
    )
    server_id = db.Column(
        db.Integer, db.ForeignKey("servers.server_id", ondelete="CASCADE"), primary_key=True
    )
    added_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    note = db.Column(db.Text)

    server = db.relationship("Server")
