import os

from nolie.settings import get_settings

from .conftest import register


def test_register_login_and_me(client):
    register(client)

    response = client.post("/auth/login", json={"email": "ada@example.com", "password": "secret123"})
    assert response.status_code == 200
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    me = client.get("/auth/me", headers=headers).json()
    assert me["email"] == "ada@example.com"
    assert me["full_name"] == "Ada"
    assert me["avatar_url"] is None


def test_duplicate_registration(client):
    register(client)
    response = client.post("/auth/register", json={"email": "ada@example.com", "password": "secret123"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


def test_bad_credentials(client):
    register(client)
    response = client.post("/auth/login", json={"email": "ada@example.com", "password": "wrong-pass"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_missing_and_invalid_tokens(client):
    missing = client.get("/auth/me")
    assert missing.status_code == 401
    assert missing.json()["detail"] == "No active session. Please sign in again."

    invalid = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert invalid.status_code == 401
    assert invalid.json()["detail"] == "Invalid authentication token."


def test_logout_revokes_token(client, auth_headers):
    assert client.post("/auth/logout", headers=auth_headers).status_code == 200

    response = client.get("/auth/me", headers=auth_headers)
    assert response.status_code == 401


def test_change_password(client, auth_headers):
    wrong = client.post(
        "/auth/change-password",
        json={"currentPassword": "nope-nope", "newPassword": "brand-new"},
        headers=auth_headers,
    )
    assert wrong.status_code == 400
    assert wrong.json()["detail"] == "Current password is incorrect"

    short = client.post(
        "/auth/change-password",
        json={"currentPassword": "secret123", "newPassword": "abc"},
        headers=auth_headers,
    )
    assert short.status_code == 400

    ok = client.post(
        "/auth/change-password",
        json={"currentPassword": "secret123", "newPassword": "brand-new"},
        headers=auth_headers,
    )
    assert ok.status_code == 200
    assert ok.json()["message"] == "Password updated successfully"

    login = client.post("/auth/login", json={"email": "ada@example.com", "password": "brand-new"})
    assert login.status_code == 200


def test_change_password_requires_session(client):
    response = client.post(
        "/auth/change-password", json={"currentPassword": "a", "newPassword": "bbbbbb"}
    )
    assert response.status_code == 401


def test_update_profile_json(client, auth_headers):
    response = client.put(
        "/profile",
        json={"full_name": "Ada Lovelace", "avatar_url": "https://cdn.example.com/a.png"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    profile = response.json()["profile"]
    assert profile["full_name"] == "Ada Lovelace"
    assert profile["avatar_url"] == "https://cdn.example.com/a.png"


def test_update_profile_with_avatar(client, auth_headers):
    response = client.post(
        "/profile",
        data={"full_name": "Countess"},
        files={"avatar": ("me.png", b"\x89PNG\r\n", "image/png")},
        headers=auth_headers,
    )

    assert response.status_code == 200
    profile = response.json()["profile"]
    assert profile["full_name"] == "Countess"
    assert profile["avatar_url"].startswith("http://testserver/avatars/")
    assert profile["avatar_url"].endswith(".png")


def test_avatar_upload_validation(client, auth_headers):
    assert client.post("/profile/avatar", headers=auth_headers).status_code == 400

    wrong_type = client.post(
        "/profile/avatar",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers,
    )
    assert wrong_type.status_code == 400
    assert wrong_type.json()["detail"] == "Invalid file type. Please upload an image."

    too_big = client.post(
        "/profile/avatar",
        files={"file": ("big.png", b"0" * (get_settings().avatar_max_bytes + 1), "image/png")},
        headers=auth_headers,
    )
    assert too_big.status_code == 400
    assert too_big.json()["detail"].startswith("File too large")


def test_avatar_upload_is_served(client, auth_headers):
    response = client.post(
        "/profile/avatar",
        files={"file": ("face.jpg", b"\xff\xd8\xffdata", "image/jpeg")},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert os.path.exists(os.path.join(get_settings().avatar_dir, body["path"]))

    served = client.get(f"/avatars/{body['path']}")
    assert served.status_code == 200
    assert served.content == b"\xff\xd8\xffdata"
