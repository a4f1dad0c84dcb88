# gamehub/api_admin.py
from flask import Blueprint, jsonify

from .request_utils import json_body
from .security import admin_required
from .services.loot import (
    InvalidLootConfig,
    LootEntryNotFound,
    LootError,
    LootTableNotFound,
    create_loot_table,
    create_loot_table_entry,
    delete_loot_table,
    delete_loot_table_entry,
    get_loot_table,
    get_loot_table_entry,
    list_loot_table_entries,
    list_loot_tables,
    update_loot_table,
    update_loot_table_entry,
)

admin_api = Blueprint("admin_api", __name__, url_prefix="/api/admin")

TABLE_FIELDS = ("name", "description", "drop_chance", "is_active")
ENTRY_FIELDS = ("loot_table_id", "cosmetic_id", "weight", "min_quantity", "max_quantity")


# -------- helpers ----------
def _error(e: LootError):
    if isinstance(e, (LootTableNotFound, LootEntryNotFound)):
        status = 404
    elif isinstance(e, InvalidLootConfig):
        status = 400
    else:
        status = 500
    return jsonify(error=e.message, code=e.code), status


# ---------------- Loot tables ----------------
@admin_api.get("/loot-tables")
@admin_required
def loot_tables_list():
    return jsonify([t.to_dict() for t in list_loot_tables()])


@admin_api.post("/loot-tables")
@admin_required
def loot_tables_create():
    data = json_body()
    try:
        table = create_loot_table(
            name=data.get("name"),
            drop_chance=data.get("drop_chance"),
            description=data.get("description"),
            is_active=data.get("is_active", True),
        )
    except LootError as e:
        return _error(e)
    return jsonify(table.to_dict()), 201


@admin_api.get("/loot-tables/<int:loot_table_id>")
@admin_required
def loot_tables_get(loot_table_id: int):
    try:
        table = get_loot_table(loot_table_id)
        entries = list_loot_table_entries(loot_table_id)
    except LootError as e:
        return _error(e)
    data = table.to_dict()
    data["entries"] = entries
    return jsonify(data)


@admin_api.put("/loot-tables/<int:loot_table_id>")
@admin_required
def loot_tables_update(loot_table_id: int):
    data = json_body()
    changes = {k: data[k] for k in TABLE_FIELDS if k in data}
    try:
        table = update_loot_table(loot_table_id, **changes)
    except LootError as e:
        return _error(e)
    return jsonify(table.to_dict())


@admin_api.delete("/loot-tables/<int:loot_table_id>")
@admin_required
def loot_tables_delete(loot_table_id: int):
    try:
        delete_loot_table(loot_table_id)
    except LootError as e:
        return _error(e)
    return jsonify(ok=True)


# ---------------- Entries ----------------
@admin_api.get("/loot-tables/<int:loot_table_id>/entries")
@admin_required
def entries_list(loot_table_id: int):
    try:
        return jsonify(list_loot_table_entries(loot_table_id))
    except LootError as e:
        return _error(e)


@admin_api.post("/loot-tables/<int:loot_table_id>/entries")
@admin_required
def entries_create(loot_table_id: int):
    data = json_body()
    try:
        entry = create_loot_table_entry(
            loot_table_id,
            cosmetic_id=data.get("cosmetic_id"),
            weight=data.get("weight"),
            min_quantity=data.get("min_quantity", 1),
            max_quantity=data.get("max_quantity", 1),
        )
    except LootError as e:
        return _error(e)
    return jsonify(entry.to_dict()), 201


@admin_api.get("/loot-tables/entries/<int:loot_entry_id>")
@admin_required
def entries_get(loot_entry_id: int):
    try:
        return jsonify(get_loot_table_entry(loot_entry_id).to_dict())
    except LootError as e:
        return _error(e)


@admin_api.put("/loot-tables/entries/<int:loot_entry_id>")
@admin_required
def entries_update(loot_entry_id: int):
    data = json_body()
    changes = {k: data[k] for k in ENTRY_FIELDS if k in data}
    try:
        entry = update_loot_table_entry(loot_entry_id, **changes)
    except LootError as e:
        return _error(e)
    return jsonify(entry.to_dict())


@admin_api.delete("/loot-tables/entries/<int:loot_entry_id>")
@admin_required
def entries_delete(loot_entry_id: int):
    try:
        delete_loot_table_entry(loot_entry_id)
    except LootError as e:
        return _error(e)
    return jsonify(ok=True)
