from functools import wraps

from flask import abort, jsonify, session


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not session.get("user_id"):
            return jsonify(error="unauthorized"), 401
        return fn(*args, **kwargs)
    return wrapper


def current_actor_id() -> int:
    """
    Id del usuario autenticado. El login vive fuera de este servicio;
    aquí solo se lee lo que dejó en la sesión.
    """
    uid = session.get("user_id")
    if not uid:
        abort(401)
    return int(uid)
