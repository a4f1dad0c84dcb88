from .base import db, Model

MATCH_OUTCOMES = ("completed", "failed", "abandoned")


class Match(Model):
    __tablename__ = "matches"

    match_id = db.Column(db.Integer, primary_key=True)
    server_id = db.Column(
        db.Integer, db.ForeignKey("servers.server_id", ondelete="CASCADE"), nullable=False, index=True
    )
    map_name = db.Column(db.String(128), nullable=False)
    game_mode = db.Column(db.String(64), nullable=False)
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime)
    outcome = db.Column(db.String(16), nullable=False)
    waves_survived = db.Column(db.Integer, nullable=False, default=0)
    total_zombies_killed = db.Column(db.Integer, nullable=False, default=0)
    total_players = db.Column(db.Integer, nullable=False, default=0)

    player_stats = db.relationship("PlayerMatchStats", backref="match", cascade="all, delete-orphan")


class PlayerMatchStats(Model):
    __tablename__ = "player_match_stats"

    player_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), primary_key=True
    )
    match_id = db.Column(
        db.Integer, db.ForeignKey("matches.match_id", ondelete="CASCADE"), primary_key=True
    )
    waves_survived = db.Column(db.Integer, nullable=False, default=0)
    zombies_killed = db.Column(db.Integer, nullable=False, default=0)
    deaths = db.Column(db.Integer, nullable=False, default=0)
    scrap_earned = db.Column(db.Integer, nullable=False, default=0)
    data_earned = db.Column(db.Integer, nullable=False, default=0)
    damage_dealt = db.Column(db.Integer, nullable=False, default=0)
    damage_taken = db.Column(db.Integer, nullable=False, default=0)
    buildings_built = db.Column(db.Integer, nullable=False, default=0)
    buildings_destroyed = db.Column(db.Integer, nullable=False, default=0)
    healing_given = db.Column(db.Integer, nullable=False, default=0)
    revives = db.Column(db.Integer, nullable=False, default=0)
    score = db.Column(db.Integer, nullable=False, default=0)
