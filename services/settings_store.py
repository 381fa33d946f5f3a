from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from flask import current_app

from models import db
from models.settings import SettingsVersion, CurrentSettings
from services.errors import ValidationError

CURRENT_ROW_ID = 1


@dataclass(frozen=True)
class WorkSettings:
    work_days: Tuple[int, ...]
    work_start: int
    work_end: int
    buffer_minutes: int
    version_id: Optional[int] = None

    @property
    def buffer_hours(self) -> float:
        return self.buffer_minutes / 60

    def to_dict(self):
        return {
            "workDays": list(self.work_days),
            "workStart": self.work_start,
            "workEnd": self.work_end,
            "bufferMinutes": self.buffer_minutes,
        }


def default_settings() -> WorkSettings:
    cfg = current_app.config
    return WorkSettings(
        work_days=tuple(cfg.get("DEFAULT_WORK_DAYS", [1, 2, 3, 4, 5])),
        work_start=int(cfg.get("DEFAULT_WORK_START", 9)),
        work_end=int(cfg.get("DEFAULT_WORK_END", 17)),
        buffer_minutes=int(cfg.get("DEFAULT_BUFFER_MINUTES", 60)),
    )


def _from_row(row: SettingsVersion) -> WorkSettings:
    days = tuple(int(d) for d in row.work_days.split(",") if d.strip() != "")
    return WorkSettings(
        work_days=days,
        work_start=row.work_start,
        work_end=row.work_end,
        buffer_minutes=row.buffer_minutes,
        version_id=row.id,
    )


def get_settings() -> WorkSettings:
    """The authoritative settings, or the configured defaults when none were ever saved."""
    current = db.session.get(CurrentSettings, CURRENT_ROW_ID)
    if current is None or current.version is None:
        return default_settings()
    return _from_row(current.version)


def _int_field(data: dict, key: str, fallback: int) -> int:
    if key not in data or data[key] is None:
        return fallback
    value = data[key]
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")


def validate_settings(data: dict, base: WorkSettings) -> WorkSettings:
    """Merges a (possibly partial) update onto `base` and checks the result."""
    if not isinstance(data, dict):
        raise ValidationError("Settings payload must be an object")

    work_days = base.work_days
    if data.get("workDays") is not None:
        raw_days = data["workDays"]
        if not isinstance(raw_days, (list, tuple)) or not raw_days:
            raise ValidationError("workDays must be a non-empty list of weekday numbers")
        try:
            days = sorted({int(d) for d in raw_days})
        except (TypeError, ValueError):
            raise ValidationError("workDays must contain integers 0-6")
        if any(d < 0 or d > 6 for d in days):
            raise ValidationError("workDays must contain integers 0-6 (0 = Sunday)")
        work_days = tuple(days)

    work_start = _int_field(data, "workStart", base.work_start)
    work_end = _int_field(data, "workEnd", base.work_end)
    buffer_minutes = _int_field(data, "bufferMinutes", base.buffer_minutes)

    if not 0 <= work_start <= 23 or not 1 <= work_end <= 24:
        raise ValidationError("workStart must be 0-23 and workEnd 1-24")
    if work_start >= work_end:
        raise ValidationError("workStart must be before workEnd")
    if not 0 <= buffer_minutes <= 24 * 60:
        raise ValidationError("bufferMinutes must be between 0 and 1440")

    return WorkSettings(work_days, work_start, work_end, buffer_minutes)


def update_settings(data: dict, performed_by=None) -> WorkSettings:
    """Appends a new history row and moves the current pointer to it."""
    merged = validate_settings(data, get_settings())

    row = SettingsVersion(
        work_days=",".join(str(d) for d in merged.work_days),
        work_start=merged.work_start,
        work_end=merged.work_end,
        buffer_minutes=merged.buffer_minutes,
        created_by=performed_by,
    )
    db.session.add(row)
    db.session.flush()

    current = db.session.get(CurrentSettings, CURRENT_ROW_ID)
    if current is None:
        current = CurrentSettings(id=CURRENT_ROW_ID, version_id=row.id)
        db.session.add(current)
    else:
        current.version_id = row.id
        current.updated_at = datetime.utcnow()
    db.session.commit()

    return _from_row(row)


def settings_history(limit: int = 50):
    rows = (
        SettingsVersion.query
        .order_by(SettingsVersion.id.desc())
        .limit(limit)
        .all()
    )
    out = []
    for r in rows:
        item = _from_row(r).to_dict()
        item.update({
            "id": r.id,
            "createdBy": r.created_by,
            "createdAt": r.created_at.isoformat(),
        })
        out.append(item)
    return out
