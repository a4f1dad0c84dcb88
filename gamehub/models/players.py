from flask_login import UserMixin

from .base import db, Model, utcnow


class Player(Model, UserMixin):
    __tablename__ = "players"

    player_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(32), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime)

    is_banned = db.Column(db.Boolean, nullable=False, default=False)
    banned_reason = db.Column(db.Text)
    banned_until = db.Column(db.DateTime)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)

    progression = db.relationship(
        "PlayerProgression", uselist=False, backref="player", cascade="all, delete-orphan"
    )

    def get_id(self):
        return str(self.player_id)

    def ban_active(self, now) -> bool:
        if not self.is_banned:
            return False
        return self.banned_until is None or self.banned_until > now


class Session(Model):
    __tablename__ = "sessions"

    session_id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False, index=True
    )
    token = db.Column(db.String(128), unique=True, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(255))


class PlayerSettings(Model):
    __tablename__ = "player_settings"

    player_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), primary_key=True
    )
    key_bindings = db.Column(db.JSON)
    mouse_sensitivity = db.Column(db.Float)
    ui_scale = db.Column(db.Float)
    color_blind_mode = db.Column(db.Boolean, nullable=False, default=False)
    subtitles_enabled = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class PlayerProgression(Model):
    __tablename__ = "player_progression"

    player_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), primary_key=True
    )
    level = db.Column(db.Integer, nullable=False, default=1)
    experience = db.Column(db.Integer, nullable=False, default=0)
    prestige_level = db.Column(db.Integer, nullable=False, default=0)
    data_currency = db.Column(db.Integer, nullable=False, default=0)
    total_matches_played = db.Column(db.Integer, nullable=False, default=0)
    total_waves_survived = db.Column(db.Integer, nullable=False, default=0)
    total_kills = db.Column(db.Integer, nullable=False, default=0)
    total_deaths = db.Column(db.Integer, nullable=False, default=0)
    total_scrap_earned = db.Column(db.Integer, nullable=False, default=0)
    total_data_earned = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)


TRANSACTION_TYPES = ("match_reward", "purchase", "prestige_reward", "admin_grant", "refund", "other")


class CurrencyTransaction(Model):
    __tablename__ = "currency_transactions"
    __table_args__ = (
        db.CheckConstraint(
            "transaction_type IN ('match_reward', 'purchase', 'prestige_reward', "
            "'admin_grant', 'refund', 'other')",
            name="ck_currency_transactions_type",
        ),
    )

    transaction_id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)
    transaction_type = db.Column(db.String(32), nullable=False)
    reference_id = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
