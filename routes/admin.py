from flask import Blueprint, jsonify, g, request

from models import db
from models.user import User, ROLES, ROLE_ADMIN
from security.rbac import require_roles
from services import settings_store
from services.errors import ValidationError, NotFound, Forbidden
from services.stats import booking_stats
from utils.audit import log_event

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# ---------- users ----------
@admin_bp.get("/users")
@require_roles(ROLE_ADMIN)
def list_users():
    role_filter = (request.args.get("role") or "").strip().lower()
    q = User.query
    if role_filter:
        q = q.filter(User.role == role_filter)

    users = q.order_by(User.created_at.desc()).all()
    return jsonify([u.to_dict() for u in users]), 200


@admin_bp.patch("/users/<int:user_id>/role")
@require_roles(ROLE_ADMIN)
def update_user_role(user_id: int):
    data = request.get_json(silent=True) or {}
    role = data.get("role")
    if not role or not isinstance(role, str):
        raise ValidationError("Missing role")
    role = role.strip().lower()
    if role not in ROLES:
        raise ValidationError("Unknown role", details={"allowed": list(ROLES)})

    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    if user.id == g.user.id and role != ROLE_ADMIN:
        raise Forbidden("Cannot remove your own admin role")

    if user.role == ROLE_ADMIN and role != ROLE_ADMIN:
        admin_count = User.query.filter_by(role=ROLE_ADMIN).count()
        if admin_count <= 1:
            raise Forbidden("Cannot remove the last admin")

    previous = user.role
    user.role = role
    db.session.commit()

    log_event(
        "ADMIN_UPDATE_ROLE",
        user_id=g.user.id,
        entity="user",
        entity_id=user.id,
        metadata={"from": previous, "to": role},
    )
    return jsonify(message="User role updated", id=user.id, role=role), 200


# ---------- settings ----------
@admin_bp.get("/settings")
@require_roles(ROLE_ADMIN)
def get_settings():
    return jsonify(settings_store.get_settings().to_dict()), 200


@admin_bp.patch("/settings")
@require_roles(ROLE_ADMIN)
def update_settings():
    data = request.get_json(silent=True)
    updated = settings_store.update_settings(data, performed_by=g.user.id)

    log_event("SETTINGS_UPDATE", user_id=g.user.id, entity="settings", entity_id=updated.version_id,
              metadata=updated.to_dict())
    return jsonify(message="Settings updated", id=updated.version_id, settings=updated.to_dict()), 200


@admin_bp.get("/settings/history")
@require_roles(ROLE_ADMIN)
def get_settings_history():
    limit = request.args.get("limit", type=int) or 50
    limit = max(1, min(limit, 200))
    return jsonify(settings_store.settings_history(limit)), 200


# ---------- stats ----------
@admin_bp.get("/stats")
@require_roles(ROLE_ADMIN)
def stats():
    log_event("ADMIN_STATS_VIEW", user_id=g.user.id)
    return jsonify(booking_stats()), 200
