import pytest
from peerlearn.core.errors import BadRequest
from peerlearn.models.orm import ActivityQuestion
from peerlearn.services.scoring import score_answers

QUESTIONS = [
    ActivityQuestion(question="2+2?", options=["4", "5"], correct_answer=0, points=10),
    ActivityQuestion(question="3+3?", options=["5", "6"], correct_answer=1, points=10),
]

def quiz_payload(hub_id, type="quiz"):
    return {"title": "Quiz1", "type": type, "hub_id": hub_id, "start_date": "2030-01-01T10:00:00Z",
            "questions": [{"question": "2+2?", "options": ["4", "5"], "correct_answer": 0, "points": 10},
                          {"question": "3+3?", "options": ["5", "6"], "correct_answer": 1, "points": 10}]}

def test_all_correct_scores_every_point():
    assert score_answers(QUESTIONS, [0, 1]) == 20

def test_any_mismatch_scores_less():
    assert score_answers(QUESTIONS, [0, 0]) == 10
    assert score_answers(QUESTIONS, [1, 0]) == 0

def test_empty_answers_is_a_forfeit():
    assert score_answers(QUESTIONS, []) == 0

def test_skipped_question_scores_nothing():
    assert score_answers(QUESTIONS, [None, 1]) == 10

@pytest.mark.parametrize("answers", [[0], [0, 1, 1]])
def test_wrong_length_rejected(answers):
    with pytest.raises(BadRequest):
        score_answers(QUESTIONS, answers)

@pytest.fixture
def quiz(client, register, make_hub):
    _, a_hdr = register("alice")
    b, b_hdr = register("bob")
    hub = make_hub(a_hdr)
    assert client.post(f"/api/hubs/{hub['id']}/join", headers=b_hdr).status_code == 200
    r = client.post("/api/activities", json=quiz_payload(hub["id"]), headers=a_hdr)
    assert r.status_code == 201, r.text
    return {"hub": hub, "activity": r.json(), "bob": b, "bob_hdr": b_hdr, "alice_hdr": a_hdr}

def test_participation_updates_score_points_and_hub_leaderboard(client, quiz):
    aid, hid = quiz["activity"]["id"], quiz["hub"]["id"]
    r = client.post(f"/api/activities/{aid}/participate", json={"answers": [0, 1]}, headers=quiz["bob_hdr"])
    assert r.status_code == 200; assert r.json() == {"message": "Activity completed", "score": 20}
    assert client.get("/api/users/profile", headers=quiz["bob_hdr"]).json()["points"] == 20
    board = client.get(f"/api/hubs/{hid}/leaderboard").json()
    assert board == [{"user": {"id": quiz["bob"]["id"], "name": "Bob", "avatar": quiz["bob"]["avatar"]}, "points": 20}]
    lb = client.get(f"/api/activities/{aid}/leaderboard").json()
    assert [e["score"] for e in lb] == [20]

def test_second_participation_rejected(client, quiz):
    aid = quiz["activity"]["id"]
    client.post(f"/api/activities/{aid}/participate", json={"answers": [0, 1]}, headers=quiz["bob_hdr"])
    r = client.post(f"/api/activities/{aid}/participate", json={"answers": [0, 1]}, headers=quiz["bob_hdr"])
    assert r.status_code == 400; assert r.json()["message"] == "Already participated in this activity"
    assert client.get("/api/users/profile", headers=quiz["bob_hdr"]).json()["points"] == 20

def test_wrong_length_writes_nothing(client, quiz):
    aid, hid = quiz["activity"]["id"], quiz["hub"]["id"]
    r = client.post(f"/api/activities/{aid}/participate", json={"answers": [0]}, headers=quiz["bob_hdr"])
    assert r.status_code == 400; assert r.json()["message"] == "Expected 2 answers, got 1"
    assert client.get(f"/api/activities/{aid}").json()["participants"] == []
    assert client.get(f"/api/hubs/{hid}/leaderboard").json() == []
    assert client.get("/api/users/profile", headers=quiz["bob_hdr"]).json()["points"] == 0

def test_forfeit_records_zero(client, quiz):
    aid = quiz["activity"]["id"]
    r = client.post(f"/api/activities/{aid}/participate", json={"answers": []}, headers=quiz["bob_hdr"])
    assert r.json()["score"] == 0
    assert len(client.get(f"/api/activities/{aid}").json()["participants"]) == 1

def test_hub_leaderboard_sums_activities(client, quiz):
    hid = quiz["hub"]["id"]
    r = client.post("/api/activities", json=quiz_payload(hid, type="contest"), headers=quiz["alice_hdr"])
    second = r.json()["id"]
    client.post(f"/api/activities/{quiz['activity']['id']}/participate", json={"answers": [0, 0]}, headers=quiz["bob_hdr"])
    client.post(f"/api/activities/{second}/participate", json={"answers": [0, 1]}, headers=quiz["bob_hdr"])
    client.post(f"/api/activities/{second}/participate", json={"answers": [0, 1]}, headers=quiz["alice_hdr"])
    board = client.get(f"/api/hubs/{hid}/leaderboard").json()
    assert [(e["user"]["name"], e["points"]) for e in board] == [("Bob", 30), ("Alice", 20)]

def test_activity_leaderboard_ties_keep_submission_order(client, quiz):
    aid, hid = quiz["activity"]["id"], quiz["hub"]["id"]
    _, c_hdr = register_and_join(client, hid, "carol")
    client.post(f"/api/activities/{aid}/participate", json={"answers": [0, 0]}, headers=quiz["bob_hdr"])
    client.post(f"/api/activities/{aid}/participate", json={"answers": [0, 0]}, headers=c_hdr)
    client.post(f"/api/activities/{aid}/participate", json={"answers": [0, 1]}, headers=quiz["alice_hdr"])
    lb = client.get(f"/api/activities/{aid}/leaderboard").json()
    assert [(e["user"]["name"], e["score"]) for e in lb] == [("Alice", 20), ("Bob", 10), ("Carol", 10)]

def register_and_join(client, hub_id, name):
    r = client.post("/api/auth/register", json={"name": name.title(), "email": f"{name}@example.com", "password": "secret123"})
    hdr = {"Authorization": f"Bearer {r.json()['access_token']}"}
    client.post(f"/api/hubs/{hub_id}/join", headers=hdr)
    return r.json()["user"], hdr

def test_non_scored_activity_records_zero(client, quiz):
    r = client.post("/api/activities", json={"title": "Pair up", "type": "challenge", "hub_id": quiz["hub"]["id"],
                                             "start_date": "2030-01-01T10:00:00"}, headers=quiz["alice_hdr"])
    r = client.post(f"/api/activities/{r.json()['id']}/participate", json={"answers": [3]}, headers=quiz["bob_hdr"])
    assert r.json()["score"] == 0

def test_only_members_create_activities(client, register, quiz):
    _, out_hdr = register("mallory")
    r = client.post("/api/activities", json=quiz_payload(quiz["hub"]["id"]), headers=out_hdr)
    assert r.status_code == 403; assert r.json()["message"] == "Not a member of this hub"

def test_workshop_gets_meeting_link_and_hides_answers(client, quiz):
    r = client.post("/api/activities", json={"title": "Live", "type": "workshop", "hub_id": quiz["hub"]["id"],
                                             "start_date": "2030-01-01T10:00:00"}, headers=quiz["alice_hdr"])
    assert r.json()["meeting_link"].startswith("https://zoom.us/j/")
    detail = client.get(f"/api/activities/{quiz['activity']['id']}").json()
    assert "correct_answer" not in detail["questions"][0]
    assert quiz["activity"]["meeting_link"] is None

def test_list_activities_by_hub(client, quiz):
    assert [a["id"] for a in client.get(f"/api/activities?hub_id={quiz['hub']['id']}").json()] == [quiz["activity"]["id"]]
    assert client.get("/api/activities?hub_id=999").json() == []
    assert client.get("/api/activities/999").status_code == 404
