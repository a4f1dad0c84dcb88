# gamehub/request_utils.py
from typing import Any, Dict

from flask import request


def json_body() -> Dict[str, Any]:
    """Request JSON as a dict; anything that is not a JSON object reads as empty."""
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}
