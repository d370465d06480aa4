import uuid

from app.core.config import settings
from app.core.security import TOKEN_COOKIE

from conftest import TEST_PASSWORD, make_user


def _login(client, email: str, password: str):
    return client.post(
        "/auth/token",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


def test_register_disabled_by_default(client, monkeypatch):
    monkeypatch.setattr(settings, "allow_public_register", False)
    r = client.post("/auth/register", json={"email": "a@example.com", "password": "secret123"})
    assert r.status_code == 403


def test_register_creates_plain_user(client, monkeypatch):
    monkeypatch.setattr(settings, "allow_public_register", True)
    email = f"reg_{uuid.uuid4().hex[:8]}@Example.com"

    r = client.post("/auth/register", json={"email": email, "password": "secret123"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == email.lower()
    assert body["user"]["role"] == "user"

    r = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert r.status_code == 200
    assert r.json()["id"] == body["user"]["id"]

    r = client.post("/auth/register", json={"email": email, "password": "secret123"})
    assert r.status_code == 409


def test_register_validates_input(client, monkeypatch):
    monkeypatch.setattr(settings, "allow_public_register", True)

    r = client.post("/auth/register", json={"email": "not-an-email", "password": "secret123"})
    assert r.status_code == 400

    r = client.post("/auth/register", json={"email": f"{uuid.uuid4().hex[:8]}@example.com", "password": "123"})
    assert r.status_code == 400
    assert r.json()["error_message"] == "password too short"


def test_login_sets_cookie_and_logout_clears_it(client):
    user = make_user()
    try:
        r = _login(client, user.email, TEST_PASSWORD)
        assert r.status_code == 200
        assert r.json()["user"]["id"] == str(user.id)
        assert client.cookies.get(TOKEN_COOKIE)

        # The cookie alone authenticates.
        r = client.get("/auth/me")
        assert r.status_code == 200
        assert r.json()["email"] == user.email

        r = client.post("/auth/logout")
        assert r.status_code == 200
        assert "max-age=0" in r.headers.get("set-cookie", "").lower()
    finally:
        client.cookies.clear()


def test_login_with_wrong_password(client):
    user = make_user()
    r = _login(client, user.email, "wrong-password")
    assert r.status_code == 401
    assert r.json()["error_code"] == "unauthorized"

    r = _login(client, "nobody@example.com", TEST_PASSWORD)
    assert r.status_code == 401


def test_login_is_rate_limited(client):
    user = make_user()
    statuses = [_login(client, user.email, "wrong-password").status_code for _ in range(21)]
    assert statuses[:20] == [401] * 20
    assert statuses[20] == 429
