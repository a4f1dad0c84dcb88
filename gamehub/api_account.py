# gamehub/api_account.py
from flask import Blueprint, jsonify, request
from flask_login import login_required

from .request_utils import json_body
from .security import current_player_id
from .services.accounts import (
    AccountError,
    DuplicateEmail,
    DuplicateUsername,
    get_player,
    get_settings,
    profile_dict,
    update_profile,
    update_settings,
)

bp = Blueprint("account_api", __name__, url_prefix="/api/account")


def _error(e: AccountError):
    status = 409 if isinstance(e, (DuplicateUsername, DuplicateEmail)) else 400
    return jsonify(error=e.message, code=e.code), status


@bp.get("/profile")
@login_required
def profile():
    return jsonify(profile_dict(get_player(current_player_id())))


@bp.put("/profile")
@login_required
def edit_profile():
    data = json_body()
    try:
        player = update_profile(current_player_id(), username=data.get("username"), email=data.get("email"))
    except AccountError as e:
        return _error(e)
    return jsonify(profile_dict(player))


@bp.get("/settings")
@login_required
def settings():
    return jsonify(get_settings(current_player_id()))


@bp.put("/settings")
@login_required
def edit_settings():
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        return jsonify(error="JSON object required"), 400
    try:
        return jsonify(update_settings(current_player_id(), data))
    except AccountError as e:
        return _error(e)
