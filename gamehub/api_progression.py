"""Progression, currency and cosmetic routes for the signed-in player."""
from flask import Blueprint, jsonify
from flask_login import login_required

from .models import db
from .request_utils import json_body
from .security import current_player_id
from .services.progression import (
    CosmeticAlreadyOwned,
    CosmeticNotFound,
    CosmeticNotOwned,
    ProgressionError,
    cosmetic_catalog,
    equip_cosmetic,
    get_progression,
    owned_cosmetics,
    prestige,
    progression_dict,
    purchase_cosmetic,
)

bp = Blueprint("progression_api", __name__, url_prefix="/api")


def _error(e: ProgressionError):
    if isinstance(e, CosmeticNotFound):
        status = 404
    elif isinstance(e, CosmeticAlreadyOwned):
        status = 409
    elif isinstance(e, CosmeticNotOwned):
        status = 403
    else:
        status = 400
    return jsonify(error=e.message, code=e.code), status


def _cosmetic_id(data):
    value = data.get("cosmetic_id")
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


@bp.get("/progression")
@login_required
def progression():
    prog = get_progression(current_player_id())
    db.session.commit()
    return jsonify(progression_dict(prog))


@bp.get("/progression/currency")
@login_required
def currency():
    prog = get_progression(current_player_id())
    db.session.commit()
    return jsonify(data_currency=prog.data_currency)


@bp.post("/progression/prestige")
@login_required
def do_prestige():
    return jsonify(prestige(current_player_id()))


@bp.get("/cosmetics/catalog")
def catalog():
    return jsonify([c.to_dict() for c in cosmetic_catalog()])


@bp.get("/cosmetics/owned")
@login_required
def owned():
    return jsonify(owned_cosmetics(current_player_id()))


@bp.put("/cosmetics/equip")
@login_required
def equip():
    cosmetic_id = _cosmetic_id(json_body())
    if cosmetic_id is None:
        return jsonify(error="cosmetic_id must be a positive integer"), 400
    try:
        return jsonify(equip_cosmetic(current_player_id(), cosmetic_id))
    except ProgressionError as e:
        return _error(e)


@bp.post("/cosmetics/purchase")
@login_required
def purchase():
    cosmetic_id = _cosmetic_id(json_body())
    if cosmetic_id is None:
        return jsonify(error="cosmetic_id must be a positive integer"), 400
    try:
        balance = purchase_cosmetic(current_player_id(), cosmetic_id)
    except ProgressionError as e:
        return _error(e)
    return jsonify(cosmetic_id=cosmetic_id, data_currency=balance), 200
