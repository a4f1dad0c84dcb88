# gamehub/api_matches.py
from flask import Blueprint, jsonify, request
from flask_login import login_required

from .security import current_player_id
from .services.leaderboards import leaderboard
from .services.matches import HISTORY_DEFAULT_LIMIT, match_history

bp = Blueprint("matches_api", __name__, url_prefix="/api")


@bp.get("/matches/history")
@login_required
def history():
    limit = request.args.get("limit", HISTORY_DEFAULT_LIMIT)
    return jsonify(match_history(current_player_id(), limit))


@bp.get("/leaderboards/daily")
def daily():
    return jsonify(leaderboard("daily"))


@bp.get("/leaderboards/weekly")
def weekly():
    return jsonify(leaderboard("weekly"))


@bp.get("/leaderboards/alltime")
def alltime():
    return jsonify(leaderboard("alltime"))
