from datetime import date, datetime
import pytest
from peerlearn.core.errors import BadRequest
from peerlearn.models.orm import TrainingSession, User
from peerlearn.services.availability import available_slots, validate_availability, windows_for_date

DAY = date(2099, 1, 5)
DOW = (DAY.weekday() + 1) % 7

def rules(**extra):
    base = {"timezone": "UTC", "recurring": [{"day_of_week": DOW, "start_time": "09:00", "end_time": "12:00",
                                              "session_durations": [60], "enabled": True}], "exceptions": []}
    base.update(extra)
    return base

def test_day_of_week_counts_from_sunday():
    sunday = date(2099, 1, 4)
    assert sunday.weekday() == 6
    avail = {"timezone": "UTC", "recurring": [{"day_of_week": 0, "start_time": "09:00", "end_time": "10:00", "enabled": True}]}
    assert len(windows_for_date(avail, sunday)) == 1
    assert windows_for_date(avail, DAY) == []

def test_windows_are_converted_from_trainer_timezone():
    avail = rules(timezone="Asia/Kolkata")
    (start, end), durations = windows_for_date(avail, DAY)[0]
    assert (start, end) == (datetime(2099, 1, 5, 3, 30), datetime(2099, 1, 5, 6, 30))
    assert durations == [60]

def test_disabled_rule_yields_nothing():
    avail = rules()
    avail["recurring"][0]["enabled"] = False
    assert windows_for_date(avail, DAY) == []

def test_blocked_day_and_partial_block():
    assert windows_for_date(rules(exceptions=[{"date": DAY.isoformat(), "type": "blocked"}]), DAY) == []
    partial = rules(exceptions=[{"date": DAY.isoformat(), "type": "blocked", "start_time": "10:00", "end_time": "11:00"}])
    assert [w for w, _ in windows_for_date(partial, DAY)] == [
        (datetime(2099, 1, 5, 9), datetime(2099, 1, 5, 10)),
        (datetime(2099, 1, 5, 11), datetime(2099, 1, 5, 12)),
    ]

def test_available_exception_adds_window():
    extra = rules(exceptions=[{"date": DAY.isoformat(), "type": "available", "start_time": "18:00", "end_time": "19:00"}])
    assert len(windows_for_date(extra, DAY)) == 2

@pytest.mark.parametrize("bad", [
    {"recurring": [{"day_of_week": 7, "start_time": "09:00", "end_time": "10:00", "enabled": True}]},
    {"recurring": [{"day_of_week": 1, "start_time": "10:00", "end_time": "09:00", "enabled": True}]},
    {"recurring": [{"day_of_week": 1, "start_time": "09:00", "end_time": "09:30", "session_durations": [60], "enabled": True}]},
    {"recurring": [{"day_of_week": 1, "start_time": "9am", "end_time": "10:00", "enabled": True}]},
    {"timezone": "Mars/Olympus"},
    {"exceptions": [{"date": "2099-13-01", "type": "blocked"}]},
    {"exceptions": [{"date": "2099-01-01", "type": "maybe"}]},
    {"exceptions": [{"date": "2099-01-05", "type": "blocked", "start_time": "10:00"}]},
    {"exceptions": [{"date": "2099-01-05", "type": "blocked", "end_time": "11:00"}]},
])
def test_validate_rejects_bad_rules(bad):
    with pytest.raises(BadRequest):
        validate_availability(bad)

def test_slots_skip_booked_and_past(db):
    trainer = User(name="Tina", email="tina@example.com", password_hash="x", is_trainer=True)
    db.add(trainer); db.commit()
    db.add(TrainingSession(title="Booked", trainer_id=trainer.id, scheduled_at=datetime(2099, 1, 5, 10), duration=60,
                           status="scheduled"))
    db.add(TrainingSession(title="Pending", trainer_id=trainer.id, scheduled_at=datetime(2099, 1, 5, 11), duration=60,
                           status="pending"))
    db.commit()
    slots = available_slots(db, trainer.id, rules(), DAY)
    assert [s["start_time"].hour for s in slots] == [9, 11]
    later = available_slots(db, trainer.id, rules(), DAY, now=datetime(2099, 1, 5, 10, 30))
    assert [s["start_time"].hour for s in later] == [11]

def test_slots_filter_by_offered_duration(db):
    avail = rules()
    avail["recurring"][0]["session_durations"] = [30, 60]
    assert len(available_slots(db, 1, avail, DAY, duration=30)) == 6
    assert available_slots(db, 1, avail, DAY, duration=45) == []

def test_availability_endpoints(client, register):
    trainer, hdr = register("tina", role="trainer")
    _, learner = register("leo")
    body = {"timezone": "UTC", "recurring": [{"day_of_week": DOW, "start_time": "09:00", "end_time": "11:00",
                                              "session_durations": [60], "enabled": True}],
            "exceptions": [{"date": "2099-01-06", "type": "blocked", "reason": "holiday"}]}
    assert client.put("/api/trainers/availability/me", json=body, headers=learner).status_code == 403
    r = client.put("/api/trainers/availability/me", json=body, headers=hdr)
    assert r.status_code == 200; assert r.json()["recurring"][0]["day_of_week"] == DOW
    assert client.get("/api/trainers/availability/me", headers=hdr).json()["timezone"] == "UTC"
    r = client.get(f"/api/trainers/{trainer['id']}/available-slots?date={DAY.isoformat()}")
    assert [s["start_time"] for s in r.json()["slots"]] == ["2099-01-05T09:00:00", "2099-01-05T10:00:00"]
    assert client.get(f"/api/trainers/{trainer['id']}/available-slots?date=2099-01-06").json()["slots"] == []
    bad = {**body, "recurring": [{**body["recurring"][0], "end_time": "08:00"}]}
    r = client.put("/api/trainers/availability/me", json=bad, headers=hdr)
    assert r.status_code == 400; assert r.json()["message"] == "End time must be after start time"
