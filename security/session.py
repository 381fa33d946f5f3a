import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app, has_request_context

from models import db
from models.session import Session

def _hash_token(token: str) -> str:
    # SHA-256 is fine for hashing random session tokens
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def token_from_request():
    """
    Cookie first (browser clients), then "Authorization: Bearer <token>" (API clients).
    Returns (raw_token, via_cookie).
    """
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "consult_session")
    raw_token = request.cookies.get(cookie_name)
    if raw_token:
        return raw_token, True

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None, False
    return None, False

def create_session(user_id: int) -> str:
    """
    Creates a server-side session and returns the RAW token (cookie / bearer value).
    Only the hash is stored in DB.
    """
    raw_token = secrets.token_urlsafe(32)
    token_hash = _hash_token(raw_token)

    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 604800)
    expires_at = datetime.utcnow() + timedelta(seconds=lifetime)

    ip = None
    user_agent = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = (request.headers.get("User-Agent") or "")[:255]

    row = Session(
        user_id=user_id,
        token_hash=token_hash,
        expires_at=expires_at,
        ip=ip,
        user_agent=user_agent,
    )
    db.session.add(row)
    db.session.commit()
    return raw_token

def get_session_from_request():
    raw_token, _ = token_from_request()
    if not raw_token:
        return None

    token_hash = _hash_token(raw_token)
    now = datetime.utcnow()

    sess = (
        Session.query
        .filter_by(token_hash=token_hash, revoked=False)
        .first()
    )
    if not sess:
        return None

    idle_seconds = current_app.config.get("IDLE_TIMEOUT_SECONDS", 7200)
    last_seen = sess.last_seen_at or sess.created_at
    if sess.expires_at <= now or last_seen + timedelta(seconds=idle_seconds) <= now:
        # expired or idle
        sess.revoked = True
        db.session.commit()
        return None

    sess.last_seen_at = now
    db.session.commit()

    return sess


def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    updated = (
        Session.query
        .filter_by(token_hash=_hash_token(raw_token), revoked=False)
        .update({"revoked": True})
    )
    db.session.commit()
    return updated > 0
