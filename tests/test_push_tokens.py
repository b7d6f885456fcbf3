import pytest

from app.core.errors import InvalidArgument
from app.services.push_tokens import is_push_token, register_token


@pytest.mark.parametrize("value,expected", [
    ("ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]", True),
    ("ExpoPushToken[abc123]", True),
    ("3f2504e0-4f89-11d3-9a0c-0305e82c3301", True),
    ("ExponentPushToken[unterminated", False),
    ("fcm:abcdef", False),
    ("", False),
    (None, False),
])
def test_token_grammar(value, expected):
    assert is_push_token(value) is expected


def test_register_is_an_upsert(client, make_user, auth_headers, expo_token):
    user = make_user()
    headers = auth_headers(user)
    token = expo_token()
    body = {"userId": user.id, "pushToken": token, "userType": "Student"}

    first = client.post("/api/notifications/push-token", json=body, headers=headers)
    assert first.status_code == 200, first.text
    assert first.json()["message"] == "Push token registered successfully"

    second = client.post("/api/notifications/push-token", json={**body, "userType": "Coordinator"}, headers=headers)
    assert second.json()["message"] == "Push token updated successfully"
    assert second.json()["token"]["id"] == first.json()["token"]["id"]

    tokens = client.get("/api/notifications/push-tokens", headers=headers).json()["tokens"]
    assert len(tokens) == 1
    assert tokens[0]["userType"] == "Coordinator"


def test_register_validation(client, make_user, auth_headers, expo_token):
    user = make_user()
    headers = auth_headers(user)

    bad_format = client.post(
        "/api/notifications/push-token",
        json={"userId": user.id, "pushToken": "not-a-token", "userType": "Student"},
        headers=headers,
    )
    assert bad_format.status_code == 400
    assert bad_format.json()["message"] == "Invalid Expo push token format"

    missing_type = client.post(
        "/api/notifications/push-token",
        json={"userId": user.id, "pushToken": expo_token()},
        headers=headers,
    )
    assert missing_type.status_code == 400


def test_cannot_register_for_someone_else(client, make_user, auth_headers, expo_token):
    user = make_user()
    victim = make_user()

    resp = client.post(
        "/api/notifications/push-token",
        json={"userId": victim.id, "pushToken": expo_token(), "userType": "Student"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 403
    assert client.get("/api/notifications/push-tokens", headers=auth_headers(victim)).json()["tokens"] == []


def test_delete_is_scoped_to_owner(client, db_session, make_user, auth_headers, expo_token):
    owner = make_user()
    other = make_user()
    token, _ = register_token(db_session, owner.id, expo_token(), "Student")

    # Someone else's id: reported as success, nothing removed
    resp = client.delete(f"/api/notifications/push-tokens/{token.id}", headers=auth_headers(other))
    assert resp.status_code == 200
    assert len(client.get("/api/notifications/push-tokens", headers=auth_headers(owner)).json()["tokens"]) == 1

    resp = client.delete(f"/api/notifications/push-tokens/{token.id}", headers=auth_headers(owner))
    assert resp.status_code == 200
    assert client.get("/api/notifications/push-tokens", headers=auth_headers(owner)).json()["tokens"] == []


def test_service_rejects_empty_values(db_session, make_user, expo_token):
    user = make_user()
    with pytest.raises(InvalidArgument):
        register_token(db_session, user.id, "", "Student")
    with pytest.raises(InvalidArgument):
        register_token(db_session, user.id, expo_token(), "")
