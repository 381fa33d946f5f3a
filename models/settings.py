from datetime import datetime
from models.db import db


class SettingsVersion(db.Model):
    """Append-only history of working-hour settings."""
    __tablename__ = "settings_history"

    id = db.Column(db.Integer, primary_key=True)

    work_days = db.Column(db.String(20), nullable=False)  # "1,2,3,4,5" (0 = Sunday)
    work_start = db.Column(db.Integer, nullable=False)
    work_end = db.Column(db.Integer, nullable=False)
    buffer_minutes = db.Column(db.Integer, nullable=False)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class CurrentSettings(db.Model):
    """Single row pointing at the authoritative settings version."""
    __tablename__ = "current_settings"

    id = db.Column(db.Integer, primary_key=True)  # always 1
    version_id = db.Column(db.Integer, db.ForeignKey("settings_history.id"), nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    version = db.relationship("SettingsVersion")
