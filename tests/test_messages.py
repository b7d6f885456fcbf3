from app.models.user import UserType


def _direct(client, headers, peer_id):
    resp = client.post(
        "/api/messaging/conversations/direct", json={"participantId": peer_id}, headers=headers
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["conversationId"]


def _send(client, headers, conversation_id, content, **extra):
    return client.post(
        f"/api/messaging/conversations/{conversation_id}/messages",
        json={"content": content, **extra},
        headers=headers,
    )


def _history(client, headers, conversation_id, **params):
    resp = client.get(
        f"/api/messaging/conversations/{conversation_id}/messages", params=params, headers=headers
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["messages"]


def test_student_coordinator_exchange(client, make_user, auth_headers):
    student = make_user(UserType.STUDENT, first_name="Ana", last_name="Reyes", id_number="2021-0007")
    coordinator = make_user(UserType.COORDINATOR, first_name="Maria", last_name="Santos")
    s_headers = auth_headers(student)
    c_headers = auth_headers(coordinator)

    conversation_id = _direct(client, s_headers, coordinator.id)

    sent = _send(client, s_headers, conversation_id, "Hello, ma'am")
    assert sent.status_code == 201, sent.text
    body = sent.json()
    assert body["success"] is True
    assert body["message"]["sender"]["name"] == "Ana Reyes"
    assert body["message"]["sender"]["username"] == "2021-0007"
    assert body["message"]["timestamp"] == "Just now"

    unread = client.get("/api/messaging/unread-count", headers=c_headers).json()
    assert unread["totalUnread"] == 1

    reply = _send(client, c_headers, conversation_id, "Hi Ana")
    assert reply.json()["message"]["sender"]["username"] == "Maria.Santos"

    history = _history(client, s_headers, conversation_id)
    assert [m["content"] for m in history] == ["Hello, ma'am", "Hi Ana"]
    assert history[0]["isRead"] is True  # own message
    assert history[1]["isRead"] is False

    marked = client.post(f"/api/messaging/conversations/{conversation_id}/read", headers=c_headers)
    assert marked.json()["messagesMarkedRead"] == 1
    assert client.get("/api/messaging/unread-count", headers=c_headers).json()["totalUnread"] == 0


def test_empty_content_is_rejected_before_write(client, db_session, make_user, auth_headers):
    from app.models.message import Message

    alice = make_user()
    bob = make_user()
    conversation_id = _direct(client, auth_headers(alice), bob.id)

    for content in ("", "   \n"):
        resp = _send(client, auth_headers(alice), conversation_id, content)
        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidArgument"

    assert db_session.query(Message).filter(Message.conversation_id == conversation_id).count() == 0


def test_non_participant_cannot_read_or_write(client, make_user, auth_headers):
    alice = make_user()
    bob = make_user()
    mallory = make_user()
    conversation_id = _direct(client, auth_headers(alice), bob.id)
    _send(client, auth_headers(alice), conversation_id, "private")

    headers = auth_headers(mallory)
    assert _send(client, headers, conversation_id, "let me in").status_code == 403
    resp = client.get(f"/api/messaging/conversations/{conversation_id}/messages", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Access denied to this conversation"
    assert client.post(f"/api/messaging/conversations/{conversation_id}/read", headers=headers).status_code == 403


def test_identical_content_is_not_deduplicated(client, make_user, auth_headers):
    alice = make_user()
    bob = make_user()
    headers = auth_headers(alice)
    conversation_id = _direct(client, headers, bob.id)

    first = _send(client, headers, conversation_id, "ping").json()["message"]["id"]
    second = _send(client, headers, conversation_id, "ping").json()["message"]["id"]

    assert first != second
    assert len(_history(client, headers, conversation_id)) == 2


def test_paging_walks_back_in_time(client, make_user, auth_headers):
    alice = make_user()
    bob = make_user()
    headers = auth_headers(alice)
    conversation_id = _direct(client, headers, bob.id)
    for i in range(5):
        _send(client, headers, conversation_id, f"m{i}")

    assert [m["content"] for m in _history(client, headers, conversation_id, page=1, limit=2)] == ["m3", "m4"]
    assert [m["content"] for m in _history(client, headers, conversation_id, page=2, limit=2)] == ["m1", "m2"]
    assert [m["content"] for m in _history(client, headers, conversation_id, page=3, limit=2)] == ["m0"]
    assert _history(client, headers, conversation_id, page=4, limit=2) == []


def test_paging_bounds(client, make_user, auth_headers):
    alice = make_user()
    bob = make_user()
    headers = auth_headers(alice)
    conversation_id = _direct(client, headers, bob.id)
    url = f"/api/messaging/conversations/{conversation_id}/messages"

    assert client.get(url, params={"page": 0}, headers=headers).status_code == 400
    assert client.get(url, params={"limit": 0}, headers=headers).status_code == 400
    assert client.get(url, params={"limit": 101}, headers=headers).status_code == 400
    assert client.get(url, params={"limit": 100}, headers=headers).status_code == 200


def test_send_bumps_conversation_activity(client, db_session, make_user, auth_headers):
    from datetime import datetime

    from app.models.conversation import Conversation

    alice = make_user()
    bob = make_user()
    headers = auth_headers(alice)
    conversation_id = _direct(client, headers, bob.id)
    before = datetime(2020, 1, 1)
    db_session.query(Conversation).filter(Conversation.id == conversation_id).update(
        {Conversation.updated_at: before}, synchronize_session=False
    )
    db_session.commit()

    _send(client, headers, conversation_id, "activity")

    after = db_session.query(Conversation.updated_at).filter(Conversation.id == conversation_id).scalar()
    assert after.replace(tzinfo=None) > before


def test_content_is_trimmed_before_storing(client, db_session, make_user, auth_headers):
    from app.models.message import Message

    alice = make_user()
    bob = make_user()
    headers = auth_headers(alice)
    conversation_id = _direct(client, headers, bob.id)

    resp = _send(client, headers, conversation_id, "  Hello  \n")
    assert resp.status_code == 201, resp.text
    assert resp.json()["message"]["content"] == "Hello"

    stored = db_session.query(Message.content).filter(Message.conversation_id == conversation_id).scalar()
    assert stored == "Hello"
    assert [m["content"] for m in _history(client, auth_headers(bob), conversation_id)] == ["Hello"]


def test_message_metadata_round_trips(client, make_user, auth_headers):
    alice = make_user()
    bob = make_user()
    headers = auth_headers(alice)
    conversation_id = _direct(client, headers, bob.id)

    resp = _send(client, headers, conversation_id, "https://cdn.example.com/x.png",
                 messageType="image", isImportant=True)
    assert resp.status_code == 201, resp.text
    message = _history(client, auth_headers(bob), conversation_id)[0]
    assert message["messageType"] == "image"
    assert message["isImportant"] is True
