from .base import db, Model, utcnow


class LootTable(Model):
    __tablename__ = "loot_tables"

    loot_table_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text)
    drop_chance = db.Column(db.Float, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    entries = db.relationship(
        "LootTableEntry",
        backref="loot_table",
        cascade="all, delete-orphan",
        order_by="LootTableEntry.loot_entry_id",
    )

    def to_dict(self) -> dict:
        return {
            "loot_table_id": self.loot_table_id,
            "name": self.name,
            "description": self.description,
            "drop_chance": self.drop_chance,
            "is_active": bool(self.is_active),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class LootTableEntry(Model):
    __tablename__ = "loot_table_entries"
    __table_args__ = (db.CheckConstraint("weight > 0", name="ck_loot_entry_weight_positive"),)

    loot_entry_id = db.Column(db.Integer, primary_key=True)
    loot_table_id = db.Column(
        db.Integer, db.ForeignKey("loot_tables.loot_table_id", ondelete="CASCADE"), nullable=False, index=True
    )
    cosmetic_id = db.Column(
        db.Integer, db.ForeignKey("cosmetic_items.cosmetic_id", ondelete="CASCADE"), nullable=False
    )
    weight = db.Column(db.Integer, nullable=False)
    min_quantity = db.Column(db.Integer, nullable=False, default=1)
    max_quantity = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self) -> dict:
        return {
            "loot_entry_id": self.loot_entry_id,
            "loot_table_id": self.loot_table_id,
            "cosmetic_id": self.cosmetic_id,
            "weight": self.weight,
            "min_quantity": self.min_quantity,
            "max_quantity": self.max_quantity,
        }
