from .base import db, Model, utcnow

COSMETIC_SLOTS = (
    "character_skin", "weapon_skin", "emote", "taunt", "badge", "title", "particle_effect", "other",
)
# rarity order; earlier in list = more common
RARITY_ORDER = ["common", "uncommon", "rare", "epic", "legendary"]
UNLOCK_CHANNELS = ("level_up", "purchase", "loot_drop", "prestige")


class CosmeticItem(Model):
    __tablename__ = "cosmetic_items"

    cosmetic_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text)
    slot = db.Column(db.String(32), nullable=False)
    category = db.Column(db.String(64))
    rarity = db.Column(db.String(16), nullable=False, default="common")
    unlock_level = db.Column(db.Integer, nullable=False, default=1)
    data_cost = db.Column(db.Integer, nullable=False, default=0)
    is_prestige_only = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "cosmetic_id": self.cosmetic_id,
            "name": self.name,
            "description": self.description,
            "slot": self.slot,
            "category": self.category,
            "rarity": self.rarity,
            "unlock_level": self.unlock_level,
            "data_cost": self.data_cost,
            "is_prestige_only": bool(self.is_prestige_only),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PlayerCosmetic(Model):
    """Ownership row; the composite key makes each grant unique per player."""

    __tablename__ = "player_cosmetics"

    player_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), primary_key=True
    )
    cosmetic_id = db.Column(
        db.Integer, db.ForeignKey("cosmetic_items.cosmetic_id", ondelete="CASCADE"), primary_key=True
    )
    unlocked_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    unlocked_via = db.Column(db.String(16), nullable=False)


class Loadout(Model):
    __tablename__ = "loadouts"

    loadout_id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(
        db.Integer, db.ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    cosmetics = db.relationship("LoadoutCosmetic", backref="loadout", cascade="all, delete-orphan")


class LoadoutCosmetic(Model):
    __tablename__ = "loadout_cosmetics"
    __table_args__ = (db.UniqueConstraint("loadout_id", "slot", name="uq_loadout_slot"),)

    loadout_id = db.Column(
        db.Integer, db.ForeignKey("loadouts.loadout_id", ondelete="CASCADE"), primary_key=True
    )
    cosmetic_id = db.Column(
        db.Integer, db.ForeignKey("cosmetic_items.cosmetic_id", ondelete="CASCADE"), primary_key=True
    )
    slot = db.Column(db.String(32), nullable=False)
