from conftest import login, register


def request_conversation(client, user, recipient_id):
    return client.post("/api/v1/chats/request", json={"recipient_id": recipient_id}, headers=user["headers"])


def send(client, user, chat_id, text):
    return client.post("/api/v1/messages/", json={"chat_id": chat_id, "text": text}, headers=user["headers"])


def test_end_to_end_first_conversation(client):
    alice_id = register(client, "alice", "pw1")["id"]
    bob_id = register(client, "bob", "pw2")["id"]
    alice = {"id": alice_id, "headers": login(client, "alice", "pw1")}
    bob = {"id": bob_id, "headers": login(client, "bob", "pw2")}

    response = request_conversation(client, alice, bob_id)
    assert response.status_code == 201
    assert response.json()["created"] is True
    chat_id = response.json()["chat_id"]

    assert send(client, alice, chat_id, "hi").status_code == 201

    history = client.get(f"/api/v1/messages/history/{chat_id}", headers=bob["headers"])
    assert history.status_code == 200
    [message] = history.json()
    assert message["text"] == "hi"
    assert message["sender_id"] == alice_id
    assert message["is_read"] is False

    read = client.post(f"/api/v1/messages/read/{chat_id}", headers=bob["headers"])
    assert read.json() == {"chat_id": chat_id, "updated": 1}

    unread = client.get("/api/v1/messages/unread-counts", headers=alice["headers"])
    assert unread.json() == {"counts": {}, "total": 0}


class TestChatsApi:
    def test_second_request_returns_same_room(self, client, alice, bob):
        first = request_conversation(client, alice, bob["id"])
        second = request_conversation(client, bob, alice["id"])

        assert second.status_code == 200
        assert second.json() == {"chat_id": first.json()["chat_id"], "created": False}

    def test_request_errors(self, client, alice):
        assert request_conversation(client, alice, alice["id"]).status_code == 400
        assert request_conversation(client, alice, 9999).status_code == 404

    def test_decline_blocks_and_lists_spam(self, client, alice, bob):
        response = client.post("/api/v1/chats/respond", json={"user_id": alice["id"], "decision": "decline"}, headers=bob["headers"])
        assert response.json() == {"user_id": alice["id"], "decision": "decline", "chat_id": None}

        blocked = request_conversation(client, alice, bob["id"])
        assert blocked.status_code == 403
        via_accept = client.post("/api/v1/chats/respond", json={"user_id": bob["id"], "decision": "accept"}, headers=alice["headers"])
        assert via_accept.status_code == 403

        spam = client.get("/api/v1/chats/spam", headers=bob["headers"])
        assert [user["username"] for user in spam.json()] == ["alice"]
        assert request_conversation(client, bob, alice["id"]).status_code == 201

    def test_pending_then_accept(self, client, alice, bob):
        chat_id = request_conversation(client, alice, bob["id"]).json()["chat_id"]
        send(client, alice, chat_id, "hi bob")

        pending = client.get("/api/v1/chats/pending", headers=bob["headers"])
        assert [user["id"] for user in pending.json()] == [alice["id"]]

        accepted = client.post("/api/v1/chats/respond", json={"user_id": alice["id"], "decision": "accept"}, headers=bob["headers"])
        assert accepted.json()["chat_id"] == chat_id
        assert client.get("/api/v1/chats/pending", headers=bob["headers"]).json() == []

    def test_invalid_decision(self, client, alice, bob):
        response = client.post("/api/v1/chats/respond", json={"user_id": alice["id"], "decision": "maybe"}, headers=bob["headers"])

        assert response.status_code == 422

    def test_chat_listing_and_detail(self, client, alice, bob, carol):
        chat_id = request_conversation(client, alice, bob["id"]).json()["chat_id"]

        chats = client.get("/api/v1/chats/", headers=bob["headers"]).json()
        assert [chat["id"] for chat in chats] == [chat_id]
        assert sorted(member["username"] for member in chats[0]["members"]) == ["alice", "bob"]

        assert client.get(f"/api/v1/chats/{chat_id}", headers=alice["headers"]).status_code == 200
        assert client.get(f"/api/v1/chats/{chat_id}", headers=carol["headers"]).status_code == 403
        assert client.get("/api/v1/chats/9999", headers=alice["headers"]).status_code == 404


class TestMessagesApi:
    def test_outsider_cannot_write_or_read(self, client, alice, bob, carol):
        chat_id = request_conversation(client, alice, bob["id"]).json()["chat_id"]

        assert send(client, carol, chat_id, "hello").status_code == 403
        assert client.get(f"/api/v1/messages/history/{chat_id}", headers=carol["headers"]).status_code == 403
        assert client.post(f"/api/v1/messages/read/{chat_id}", headers=carol["headers"]).status_code == 403
        assert client.get(f"/api/v1/messages/history/{chat_id}", headers=alice["headers"]).json() == []

    def test_empty_message(self, client, alice, bob):
        chat_id = request_conversation(client, alice, bob["id"]).json()["chat_id"]

        response = send(client, alice, chat_id, "   ")

        assert response.status_code == 400
        assert response.json() == {"detail": "Message text must not be empty"}

    def test_unknown_chat(self, client, alice):
        assert send(client, alice, 9999, "hi").status_code == 404

    def test_unread_counts_per_sender(self, client, alice, bob, carol):
        with_alice = request_conversation(client, bob, alice["id"]).json()["chat_id"]
        with_carol = request_conversation(client, carol, alice["id"]).json()["chat_id"]
        send(client, bob, with_alice, "one")
        send(client, bob, with_alice, "two")
        send(client, carol, with_carol, "three")

        unread = client.get("/api/v1/messages/unread-counts", headers=alice["headers"]).json()

        assert unread == {"counts": {str(bob["id"]): 2, str(carol["id"]): 1}, "total": 3}

    def test_requires_authentication(self, client):
        assert client.get("/api/v1/messages/unread-counts").status_code == 401


class TestUsersApi:
    def test_search_prefers_prefix_matches(self, client, alice):
        for username in ("bobby", "jimbob", "robert"):
            register(client, username, "secret")

        response = client.get("/api/v1/users/search", params={"q": "bob"}, headers=alice["headers"])

        assert [user["username"] for user in response.json()] == ["bobby", "jimbob"]

    def test_search_excludes_self_and_escapes_wildcards(self, client, alice):
        register(client, "alison", "secret")

        by_name = client.get("/api/v1/users/search", params={"q": "ali"}, headers=alice["headers"]).json()
        wildcard = client.get("/api/v1/users/search", params={"q": "%"}, headers=alice["headers"]).json()

        assert [user["username"] for user in by_name] == ["alison"]
        assert wildcard == []

    def test_update_profile_with_avatar(self, client, alice):
        response = client.put("/api/v1/users/me", json={
            "note": "hello there",
            "avatar": "/uploads/alice.png",
            "surname": "Liddell",
        }, headers=alice["headers"])

        assert response.status_code == 200
        profile = client.get(f"/api/v1/users/{alice['id']}", headers=alice["headers"]).json()
        assert profile["note"] == "hello there"
        assert profile["avatar"] == "/uploads/alice.png"
        assert profile["surname"] == "Liddell"

    def test_update_profile_rejects_taken_username(self, client, alice, bob):
        response = client.put("/api/v1/users/me", json={"username": "bob"}, headers=alice["headers"])

        assert response.status_code == 400

    def test_unknown_user(self, client, alice):
        assert client.get("/api/v1/users/9999", headers=alice["headers"]).status_code == 404


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
