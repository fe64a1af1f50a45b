def test_health(client):
    r = client.get("/health"); assert r.status_code == 200; assert r.json()["status"] == "ok"

def test_register_and_login(client, register):
    user, hdr = register("ana")
    assert user["email"] == "ana@example.com" and user["points"] == 0
    r = client.post("/api/auth/login", json={"email": "ANA@example.com", "password": "secret123"})
    assert r.status_code == 200; assert r.json()["user"]["id"] == user["id"]
    r = client.get("/api/users/profile", headers={"Authorization": f"Bearer {r.json()['access_token']}"})
    assert r.status_code == 200; assert r.json()["name"] == "Ana"

def test_register_duplicate_email(client, register):
    register("ana")
    r = client.post("/api/auth/register", json={"name": "Ana 2", "email": "ana@example.com", "password": "secret123"})
    assert r.status_code == 400; assert r.json() == {"message": "User already exists"}

def test_bad_credentials(client, register):
    register("ana")
    r = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope-nope"})
    assert r.status_code == 401; assert r.json()["message"] == "Invalid email or password"

def test_bad_token(client):
    r = client.get("/api/users/profile", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401; assert r.json()["message"] == "Not authorized, token failed"

def test_missing_token(client):
    r = client.get("/api/users/profile")
    assert r.status_code in (401, 403)

def test_malformed_body_is_422(client):
    r = client.post("/api/auth/register", json={"name": "x"})
    assert r.status_code == 422; assert r.json()["message"] == "Validation error"

def test_profile_update_and_public_profile(client, register):
    user, hdr = register("ana")
    r = client.put("/api/users/profile", json={"bio": "Learning Rust", "skills_to_learn": ["rust"]}, headers=hdr)
    assert r.status_code == 200; assert r.json()["bio"] == "Learning Rust"
    r = client.get(f"/api/users/{user['id']}")
    assert r.status_code == 200; assert r.json()["skills_to_learn"] == ["rust"]; assert "email" not in r.json()
    assert client.get("/api/users/9999").status_code == 404

def test_become_trainer(client, register):
    user, hdr = register("ana")
    r = client.post("/api/users/become-trainer", json={"trainer_profile": {"domain": ["python"], "hourly_rate": 30}}, headers=hdr)
    assert r.status_code == 200
    body = r.json()
    assert body["is_trainer"] is True and body["role"] == "both"
    assert body["trainer_profile"]["pricing"]["hourly_rate"] == 30
