"""
Trainer availability and double-booking checks.

Availability is stored on the trainer as::

    {
        "timezone": "Asia/Kolkata",
        "recurring": [{"day_of_week": 1, "start_time": "18:00", "end_time": "21:00",
                       "session_durations": [30, 60], "enabled": True}],
        "exceptions": [{"date": "2026-10-20", "type": "blocked"},
                       {"date": "2026-10-21", "type": "available", "start_time": "09:00", "end_time": "11:00"}],
    }

``day_of_week`` counts from Sunday (0) to Saturday (6). Times are wall-clock times
in the trainer's timezone; slots are returned as naive UTC datetimes, the same
convention as every datetime column.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from sqlalchemy.orm import Session
from sqlalchemy import select
from peerlearn.core.config import settings
from peerlearn.core.errors import BadRequest
from peerlearn.models.orm import TrainingSession, utcnow

Interval = Tuple[datetime, datetime]

# longest session we look back for when searching overlaps
MAX_SESSION_MINUTES = 24 * 60

def parse_hhmm(value: str) -> int:
    try:
        hh, mm = value.split(":")
        minutes = int(hh) * 60 + int(mm)
    except (AttributeError, ValueError):
        raise BadRequest(f"Invalid time '{value}', expected HH:MM")
    if not 0 <= minutes <= 24 * 60 or not 0 <= int(mm) < 60:
        raise BadRequest(f"Invalid time '{value}', expected HH:MM")
    return minutes

def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)

def overlaps(a: Interval, b: Interval) -> bool:
    return a[0] < b[1] and b[0] < a[1]

def trainer_zone(availability: Dict) -> ZoneInfo:
    name = (availability or {}).get("timezone") or settings.DEFAULT_TRAINER_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise BadRequest(f"Unknown timezone '{name}'")

def validate_availability(availability: Dict) -> Dict:
    """Check rule shapes and return a normalized copy."""
    trainer_zone(availability)
    rules = []
    for rule in availability.get("recurring") or []:
        dow = rule.get("day_of_week")
        if not isinstance(dow, int) or not 0 <= dow <= 6:
            raise BadRequest("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
        durations = sorted({int(d) for d in rule.get("session_durations") or [60]})
        if any(d <= 0 for d in durations):
            raise BadRequest("Session durations must be positive")
        enabled = bool(rule.get("enabled", False))
        if enabled:
            start, end = parse_hhmm(rule["start_time"]), parse_hhmm(rule["end_time"])
            if end <= start:
                raise BadRequest("End time must be after start time")
            if end - start < durations[0]:
                raise BadRequest(f"Time slot ({end - start} mins) is too short for the selected session durations")
        rules.append({**rule, "session_durations": durations, "enabled": enabled})
    exceptions = []
    for exc in availability.get("exceptions") or []:
        if exc.get("type") not in ("available", "blocked"):
            raise BadRequest("Exception type must be 'available' or 'blocked'")
        try:
            date.fromisoformat(str(exc.get("date"))[:10])
        except ValueError:
            raise BadRequest(f"Invalid exception date '{exc.get('date')}'")
        if exc.get("type") == "available" and (not exc.get("start_time") or not exc.get("end_time")):
            raise BadRequest("Available exceptions need start_time and end_time")
        if bool(exc.get("start_time")) != bool(exc.get("end_time")):
            raise BadRequest("Exceptions need both start_time and end_time or neither")
        if exc.get("start_time") and parse_hhmm(exc["end_time"]) <= parse_hhmm(exc["start_time"]):
            raise BadRequest("End time must be after start time")
        exceptions.append(exc)
    return {"timezone": availability.get("timezone") or settings.DEFAULT_TRAINER_TIMEZONE, "recurring": rules, "exceptions": exceptions}

def _local(day: date, minutes: int, zone: ZoneInfo) -> datetime:
    base = datetime.combine(day, time(0, 0), tzinfo=zone)
    return to_utc_naive(base + timedelta(minutes=minutes))

def windows_for_date(availability: Dict, day: date) -> List[Tuple[Interval, List[int]]]:
    """Open (start, end) windows on ``day`` with the durations offered in each."""
    availability = availability or {}
    zone = trainer_zone(availability)
    dow = (day.weekday() + 1) % 7
    windows: List[Tuple[Interval, List[int]]] = []
    for rule in availability.get("recurring") or []:
        if rule.get("enabled") and rule.get("day_of_week") == dow:
            iv = (_local(day, parse_hhmm(rule["start_time"]), zone), _local(day, parse_hhmm(rule["end_time"]), zone))
            windows.append((iv, list(rule.get("session_durations") or [60])))
    day_exceptions = [e for e in availability.get("exceptions") or [] if str(e.get("date"))[:10] == day.isoformat()]
    for exc in day_exceptions:
        if exc["type"] == "available":
            iv = (_local(day, parse_hhmm(exc["start_time"]), zone), _local(day, parse_hhmm(exc["end_time"]), zone))
            windows.append((iv, list(exc.get("session_durations") or [60])))
    for exc in day_exceptions:
        if exc["type"] != "blocked":
            continue
        if not exc.get("start_time"):
            return []
        blocked = (_local(day, parse_hhmm(exc["start_time"]), zone), _local(day, parse_hhmm(exc["end_time"]), zone))
        trimmed = []
        for iv, durations in windows:
            if not overlaps(iv, blocked):
                trimmed.append((iv, durations))
                continue
            if iv[0] < blocked[0]:
                trimmed.append(((iv[0], blocked[0]), durations))
            if blocked[1] < iv[1]:
                trimmed.append(((blocked[1], iv[1]), durations))
        windows = trimmed
    return sorted(windows, key=lambda w: w[0][0])

def busy_intervals(db: Session, trainer_id: int, start: datetime, end: datetime,
                   exclude_id: Optional[int] = None) -> List[Tuple[Interval, TrainingSession]]:
    stmt = select(TrainingSession).where(
        TrainingSession.trainer_id == trainer_id,
        TrainingSession.status == "scheduled",
        TrainingSession.scheduled_at < end,
        TrainingSession.scheduled_at > start - timedelta(minutes=MAX_SESSION_MINUTES),
    )
    if exclude_id is not None:
        stmt = stmt.where(TrainingSession.id != exclude_id)
    found = []
    for s in db.scalars(stmt):
        iv = (s.scheduled_at, s.scheduled_at + timedelta(minutes=s.duration))
        if overlaps(iv, (start, end)):
            found.append((iv, s))
    return found

def find_conflict(db: Session, trainer_id: int, start: datetime, duration: int,
                  exclude_id: Optional[int] = None) -> Optional[TrainingSession]:
    start = to_utc_naive(start)
    hits = busy_intervals(db, trainer_id, start, start + timedelta(minutes=duration), exclude_id)
    return hits[0][1] if hits else None

def available_slots(db: Session, trainer_id: int, availability: Dict, day: date,
                    duration: Optional[int] = None, now: Optional[datetime] = None) -> List[Dict]:
    now = now or utcnow()
    slots = []
    for (w_start, w_end), durations in windows_for_date(availability, day):
        if duration is not None and duration not in durations:
            continue
        length = duration or min(durations)
        busy = [iv for iv, _ in busy_intervals(db, trainer_id, w_start, w_end)]
        cursor = w_start
        while cursor + timedelta(minutes=length) <= w_end:
            slot = (cursor, cursor + timedelta(minutes=length))
            if slot[0] >= now and not any(overlaps(slot, b) for b in busy):
                slots.append({"start_time": slot[0], "end_time": slot[1], "duration": length})
            cursor = slot[1]
    return slots
