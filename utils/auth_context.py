from functools import wraps
from flask import g, jsonify
from security.session import get_session_from_request
from models import db
from models.user import User


def load_current_user():
    g.user = None
    g.session = None

    sess = get_session_from_request()
    if sess is None:
        return

    user = db.session.get(User, sess.user_id)
    # account removed after the session was issued
    if user is None:
        return

    g.session = sess
    g.user = user


def login_required(fn):
    """Routes behind this see an authenticated ``g.user`` (cookie or bearer)."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if g.get("user") is None:
            return jsonify(error="Authentication required", code="UNAUTHENTICATED"), 401
        return fn(*args, **kwargs)
    return wrapper
