# gamehub/api_social.py
from flask import Blueprint, jsonify
from flask_login import login_required

from .request_utils import json_body
from .security import current_player_id
from .services.social import (
    CannotFriendSelf,
    FriendRequestExists,
    FriendRequestNotFound,
    FriendRequestNotPending,
    SocialError,
    TargetPlayerNotFound,
    list_friends,
    respond_to_request,
    send_friend_request,
)

bp = Blueprint("social_api", __name__, url_prefix="/api/friends")

_STATUS = {
    CannotFriendSelf: 400,
    TargetPlayerNotFound: 404,
    FriendRequestNotFound: 404,
    FriendRequestExists: 409,
    FriendRequestNotPending: 409,
}


def _error(e: SocialError):
    status = next((s for cls, s in _STATUS.items() if isinstance(e, cls)), 400)
    return jsonify(error=e.message, code=e.code), status


@bp.get("")
@login_required
def friends():
    return jsonify(list_friends(current_player_id()))


@bp.post("/request")
@login_required
def request_friend():
    data = json_body()
    friend_id = data.get("friend_id")
    if isinstance(friend_id, bool) or not isinstance(friend_id, int) or friend_id <= 0:
        return jsonify(error="friend_id must be a positive integer"), 400
    try:
        send_friend_request(current_player_id(), friend_id)
    except SocialError as e:
        return _error(e)
    return jsonify(ok=True, friend_id=friend_id, status="pending"), 201


@bp.put("/<int:other_id>")
@login_required
def respond(other_id: int):
    data = json_body()
    action = data.get("action")
    try:
        row = respond_to_request(current_player_id(), other_id, action)
    except SocialError as e:
        return _error(e)
    return jsonify(ok=True, friend_id=other_id, status=row.status if row else "declined")
