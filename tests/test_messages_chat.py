import asyncio
from peerlearn.services.chat_rooms import RoomRegistry

def test_history_oldest_first_and_limit(client, register, make_hub):
    _, a = register("alice")
    hub = make_hub(a)
    for text in ("one", "two", "three"):
        assert client.post("/api/messages", json={"hub_id": hub["id"], "content": text}, headers=a).status_code == 201
    assert [m["content"] for m in client.get(f"/api/messages/{hub['id']}", headers=a).json()] == ["one", "two", "three"]
    assert [m["content"] for m in client.get(f"/api/messages/{hub['id']}?limit=2", headers=a).json()] == ["two", "three"]

def test_history_before_timestamp(client, register, make_hub):
    _, a = register("alice")
    hub = make_hub(a)
    first = client.post("/api/messages", json={"hub_id": hub["id"], "content": "first"}, headers=a).json()
    second = client.post("/api/messages", json={"hub_id": hub["id"], "content": "second"}, headers=a).json()
    r = client.get(f"/api/messages/{hub['id']}", params={"before": second["created_at"]}, headers=a)
    assert [m["id"] for m in r.json()] == [first["id"]]

def test_only_members_read_and_send(client, register, make_hub):
    _, a = register("alice")
    _, b = register("bob")
    hub = make_hub(a)
    assert client.get(f"/api/messages/{hub['id']}", headers=b).status_code == 403
    r = client.post("/api/messages", json={"hub_id": hub["id"], "content": "hi"}, headers=b)
    assert r.status_code == 403; assert r.json()["message"] == "Not a member of this hub"

def test_reactions_not_duplicated(client, register, make_hub):
    user, a = register("alice")
    hub = make_hub(a)
    m = client.post("/api/messages", json={"hub_id": hub["id"], "content": "hi"}, headers=a).json()
    client.post(f"/api/messages/{m['id']}/react", json={"emoji": "🎉"}, headers=a)
    r = client.post(f"/api/messages/{m['id']}/react", json={"emoji": "🎉"}, headers=a)
    assert r.json()["reactions"] == [{"user_id": user["id"], "emoji": "🎉"}]
    r = client.post(f"/api/messages/{m['id']}/react", json={"emoji": "👍"}, headers=a)
    assert len(r.json()["reactions"]) == 2
    assert client.post("/api/messages/999/react", json={"emoji": "👍"}, headers=a).status_code == 404

def test_reply_must_stay_in_hub(client, register, make_hub):
    _, a = register("alice")
    h1, h2 = make_hub(a), make_hub(a, name="Other")
    m = client.post("/api/messages", json={"hub_id": h1["id"], "content": "hi"}, headers=a).json()
    r = client.post("/api/messages", json={"hub_id": h2["id"], "content": "re", "reply_to": m["id"]}, headers=a)
    assert r.status_code == 400

def test_relay_broadcasts_and_typing_skips_sender(client):
    with client.websocket_connect("/ws/hubs/7") as alice, client.websocket_connect("/ws/hubs/7") as bob:
        bob.send_json({"event": "typing", "data": {"user": "bob"}})
        assert alice.receive_json() == {"event": "user-typing", "data": {"user": "bob"}}
        alice.send_json({"event": "send-message", "data": {"content": "hello"}})
        expected = {"event": "receive-message", "data": {"content": "hello"}}
        assert alice.receive_json() == expected
        assert bob.receive_json() == expected

class FakeSocket:
    def __init__(self, fail=False):
        self.fail, self.sent = fail, []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("closed")
        self.sent.append(data)

def test_registry_drops_failed_sockets():
    registry = RoomRegistry()
    good, bad = FakeSocket(), FakeSocket(fail=True)
    registry.join("1", good); registry.join("1", bad)
    delivered = asyncio.run(registry.broadcast("1", "receive-message", {"x": 1}))
    assert delivered == 1
    assert good.sent == [{"event": "receive-message", "data": {"x": 1}}]
    assert registry.size("1") == 1

def test_registry_rooms_are_isolated():
    registry = RoomRegistry()
    a, b = FakeSocket(), FakeSocket()
    registry.join("1", a); registry.join("2", b)
    asyncio.run(registry.broadcast("1", "user-typing", {}, exclude=a))
    assert a.sent == [] and b.sent == []
    registry.leave("1", a)
    assert registry.size("1") == 0 and "1" not in registry.rooms
