# gamehub/api_loot.py
from flask import Blueprint, current_app, jsonify
from flask_login import login_required

from .security import current_player_id
from .services.loot import LootIntegrityError, LootUnavailable

bp = Blueprint("loot_api", __name__, url_prefix="/api/loot")


@bp.post("/drop")
@login_required
def drop():
    engine = current_app.extensions["loot_engine"]
    try:
        cosmetic = engine.generate_loot_drop(current_player_id())
    except LootUnavailable as e:
        return jsonify(dropped=False, reason=e.code), 200
    except LootIntegrityError as e:
        return jsonify(error=e.message, code=e.code), 500
    return jsonify(dropped=True, cosmetic=cosmetic.to_dict()), 200
