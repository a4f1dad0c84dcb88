from .base import db, Model, utcnow

FRIEND_STATUSES = ("pending", "accepted", "blocked")


class Friend(Model):
    """Directed friend edge; ``player_id`` is the requester."""

    __tablename__ = "friends"

    player_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), primary_key=True
    )
    friend_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), primary_key=True
    )
    status = db.Column(db.String(16), nullable=False, default="pending")
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
