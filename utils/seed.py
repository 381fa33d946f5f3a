from flask import current_app

from models import db
from models.user import User, ROLE_ADMIN


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def is_admin_email(email: str) -> bool:
    configured = {normalize_email(e) for e in current_app.config.get("ADMIN_EMAILS", [])}
    return normalize_email(email) in configured


def promote_admins():
    """Give the admin role to every configured admin email that already has an account."""
    emails = [normalize_email(e) for e in current_app.config.get("ADMIN_EMAILS", [])]
    if not emails:
        return 0
    users = User.query.filter(User.email.in_(emails), User.role != ROLE_ADMIN).all()
    for u in users:
        u.role = ROLE_ADMIN
    db.session.commit()
    return len(users)
