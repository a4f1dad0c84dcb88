# gamehub/cli.py: maintenance commands registered on ``flask``
import json
import os

import click
import sqlalchemy as sa
from flask import current_app

from .models import db, CosmeticItem, Player
from .models.cosmetics import COSMETIC_SLOTS, RARITY_ORDER
from .services.loot import create_loot_table, create_loot_table_entry, LootError


def _upsert_cosmetic(spec: dict):
    """Insert or update one cosmetic keyed by name; returns (item, created)."""
    name = (spec.get("name") or "").strip()
    if not name:
        raise click.ClickException("every cosmetic needs a name")
    slot = spec.get("slot") or "other"
    rarity = spec.get("rarity") or "common"
    if slot not in COSMETIC_SLOTS:
        raise click.ClickException(f"{name}: unknown slot {slot!r}")
    if rarity not in RARITY_ORDER:
        raise click.ClickException(f"{name}: unknown rarity {rarity!r}")

    item = db.session.scalars(sa.select(CosmeticItem).where(CosmeticItem.name == name)).first()
    created = item is None
    if created:
        item = CosmeticItem(name=name)
        db.session.add(item)
    item.slot = slot
    item.rarity = rarity
    item.description = spec.get("description") or item.description
    item.category = spec.get("category") or item.category
    item.unlock_level = int(spec.get("unlock_level") or 1)
    item.data_cost = int(spec.get("data_cost") or 0)
    item.is_prestige_only = bool(spec.get("is_prestige_only"))
    return item, created


def seed_cosmetics(payload: dict) -> dict:
    created = updated = 0
    by_name = {}
    for spec in payload.get("cosmetics") or []:
        item, was_created = _upsert_cosmetic(spec)
        by_name[item.name] = item
        created += was_created
        updated += not was_created
    db.session.commit()

    tables = 0
    for spec in payload.get("loot_tables") or []:
        try:
            table = create_loot_table(
                name=spec.get("name"),
                drop_chance=spec.get("drop_chance"),
                description=spec.get("description"),
                is_active=spec.get("is_active", True),
            )
            for entry in spec.get("entries") or []:
                item = by_name.get(entry.get("cosmetic"))
                if item is None:
                    raise click.ClickException(f"loot entry references unknown cosmetic {entry.get('cosmetic')!r}")
                create_loot_table_entry(
                    table.loot_table_id,
                    cosmetic_id=item.cosmetic_id,
                    weight=entry.get("weight"),
                    min_quantity=entry.get("min_quantity", 1),
                    max_quantity=entry.get("max_quantity", 1),
                )
        except LootError as e:
            raise click.ClickException(f"loot table {spec.get('name')!r}: {e.message}") from e
        tables += 1
    return {"ok": True, "created": created, "updated": updated, "loot_tables": tables}


def register_cli(app):
    @app.cli.command("sweep-join-tokens")
    def sweep_join_tokens():
        """Delete expired or consumed join tokens."""
        removed = current_app.extensions["join_tokens"].sweep()
        click.echo(json.dumps({"ok": True, "removed": removed}))

    @app.cli.command("grant-admin")
    @click.argument("username")
    @click.option("--revoke", is_flag=True, help="Remove admin rights instead.")
    def grant_admin(username, revoke):
        """Give (or take away) admin rights for a player."""
        player = db.session.scalars(sa.select(Player).where(Player.username == username)).first()
        if player is None:
            raise click.ClickException(f"player {username!r} not found")
        player.is_admin = not revoke
        db.session.commit()
        click.echo(json.dumps({"ok": True, "player_id": player.player_id, "is_admin": player.is_admin}))

    @app.cli.command("seed-cosmetics")
    @click.argument("path", type=click.Path(dir_okay=False))
    def seed_cosmetics_cmd(path):
        """Upsert cosmetics (and optional loot tables) from a JSON file."""
        if not os.path.exists(path):
            raise click.ClickException(f"Seed file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
        click.echo(json.dumps(seed_cosmetics(payload), indent=2))
