from datetime import datetime

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User, ROLE_ADMIN, ROLE_USER
from security.session import create_session, revoke_session, token_from_request
from security.csrf import issue_csrf_token
from services.engine import get_engine
from services.errors import ValidationError
from utils.audit import log_event
from utils.auth_context import login_required
from utils.seed import is_admin_email


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _upsert_user(identity) -> User:
    user = User.query.filter_by(email=identity.email).first()
    if user is None:
        user = User(
            email=identity.email,
            name=identity.name,
            picture=identity.picture,
            role=ROLE_USER,
            created_at=datetime.utcnow(),
        )
        db.session.add(user)
    else:
        # profile follows the Google account; role is ours
        user.name = identity.name or user.name
        user.picture = identity.picture or user.picture

    if is_admin_email(user.email):
        user.role = ROLE_ADMIN
    db.session.commit()
    return user


@auth_bp.post("/google")
def google_sign_in():
    data = request.get_json(silent=True) or {}
    credential = data.get("credential")
    if not credential or not isinstance(credential, str):
        raise ValidationError("Missing Google credential")

    try:
        identity = get_engine().identity.verify(credential)
    except Exception:
        log_event("LOGIN_FAIL", metadata={"reason": "invalid_credential"})
        raise

    user = _upsert_user(identity)
    raw_token = create_session(user.id)
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "consult_session")
    max_age = current_app.config.get("SESSION_LIFETIME_SECONDS", 7 * 24 * 60 * 60)

    resp = jsonify(token=raw_token, user=user.to_dict())
    resp.set_cookie(
        cookie_name,
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=max_age,
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"role": user.role})
    return resp, 200


@auth_bp.get("/session")
@login_required
def session():
    return jsonify(user=g.user.to_dict()), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "consult_session")
    raw_token, _ = token_from_request()

    revoke_session(raw_token)
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(success=True)
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
