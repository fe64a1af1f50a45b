import pytest

SLOT = "2099-01-05T10:00:00Z"

@pytest.fixture
def completed(client, register):
    trainer, t_hdr = register("tina", role="trainer")
    _, l_hdr = register("leo")
    s = client.post("/api/sessions", json={"trainer_id": trainer["id"], "title": "1:1", "scheduled_at": SLOT},
                    headers=l_hdr).json()
    client.put(f"/api/sessions/{s['id']}/complete", headers=t_hdr)
    return {"trainer": trainer, "t": t_hdr, "l": l_hdr, "session": s}

def test_rate_completed_session(client, completed):
    r = client.post("/api/ratings", json={"session_id": completed["session"]["id"], "rating": 4, "review": "Clear"},
                    headers=completed["l"])
    assert r.status_code == 201; assert r.json()["trainer_id"] == completed["trainer"]["id"]
    profile = client.get(f"/api/trainers/{completed['trainer']['id']}").json()
    assert profile["trainer"]["average_rating"] == 4.0 and profile["trainer"]["total_ratings"] == 1
    assert [x["review"] for x in profile["ratings"]] == ["Clear"]

def test_duplicate_rating(client, completed):
    payload = {"session_id": completed["session"]["id"], "rating": 5}
    client.post("/api/ratings", json=payload, headers=completed["l"])
    r = client.post("/api/ratings", json=payload, headers=completed["l"])
    assert r.status_code == 400; assert r.json()["message"] == "Already rated this session"

def test_average_recomputed_across_sessions(client, completed, register):
    _, other = register("olga")
    s = client.post("/api/sessions", json={"trainer_id": completed["trainer"]["id"], "title": "1:1",
                                           "scheduled_at": "2099-02-01T10:00:00Z"}, headers=other).json()
    client.put(f"/api/sessions/{s['id']}/complete", headers=completed["t"])
    client.post("/api/ratings", json={"session_id": completed["session"]["id"], "rating": 5}, headers=completed["l"])
    client.post("/api/ratings", json={"session_id": s["id"], "rating": 2}, headers=other)
    trainer = client.get(f"/api/trainers/{completed['trainer']['id']}").json()["trainer"]
    assert trainer["average_rating"] == 3.5 and trainer["total_ratings"] == 2
    assert len(client.get(f"/api/ratings/trainer/{completed['trainer']['id']}").json()) == 2

def test_cannot_rate_unfinished_or_foreign_sessions(client, register):
    trainer, _ = register("tina", role="trainer")
    _, l_hdr = register("leo")
    _, stranger = register("sam")
    s = client.post("/api/sessions", json={"trainer_id": trainer["id"], "title": "1:1", "scheduled_at": SLOT},
                    headers=l_hdr).json()
    r = client.post("/api/ratings", json={"session_id": s["id"], "rating": 5}, headers=l_hdr)
    assert r.status_code == 400; assert r.json()["message"] == "Can only rate completed sessions"
    assert client.post("/api/ratings", json={"session_id": s["id"], "rating": 9}, headers=l_hdr).status_code == 422

def test_stranger_cannot_rate(client, completed, register):
    _, stranger = register("sam")
    r = client.post("/api/ratings", json={"session_id": completed["session"]["id"], "rating": 1}, headers=stranger)
    assert r.status_code == 403

def test_trainer_search(client, register):
    _, a = register("ana", role="trainer")
    _, b = register("ben", role="trainer")
    register("cal")
    client.put("/api/trainers/profile", json={"domain": ["python"], "hourly_rate": 50}, headers=a)
    client.put("/api/trainers/profile", json={"domain": ["go"], "hourly_rate": 20, "bio": "Gopher"}, headers=b)
    names = lambda q: [t["name"] for t in client.get(f"/api/trainers{q}").json()]
    assert sorted(names("")) == ["Ana", "Ben"]
    assert names("?domain=python") == ["Ana"]
    assert names("?max_price=30") == ["Ben"]
    assert names("?sort=price-low") == ["Ben", "Ana"]
    assert names("?search=gopher") == ["Ben"]
    assert names("?min_rating=1") == []

def test_trainer_profile_update_requires_trainer(client, register):
    _, hdr = register("leo")
    r = client.put("/api/trainers/profile", json={"hourly_rate": 10}, headers=hdr)
    assert r.status_code == 403; assert r.json()["message"] == "Not a trainer"

def test_programs_and_missing_trainer(client, register):
    trainer, hdr = register("tina", role="trainer")
    learner, _ = register("leo")
    client.put("/api/trainers/profile", json={"programs": [{"name": "Bootcamp", "price": 200}]}, headers=hdr)
    assert client.get(f"/api/trainers/{trainer['id']}/programs").json() == [{"name": "Bootcamp", "price": 200}]
    assert client.get(f"/api/trainers/{learner['id']}").status_code == 404
