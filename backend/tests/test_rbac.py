import uuid

from app.core.security import create_access_token


def test_user_cannot_access_admin_endpoints(client, user_headers):
    r = client.get("/admin/users", headers=user_headers)
    assert r.status_code == 403
    assert r.json()["error_code"] == "forbidden"

    r = client.post("/admin/packages", json={"title": "Nope"}, headers=user_headers)
    assert r.status_code == 403

    r = client.delete(f"/admin/questions/{uuid.uuid4()}", headers=user_headers)
    assert r.status_code == 403


def test_anonymous_is_rejected(client):
    for method, path in [
        ("get", "/packages"),
        ("get", "/me/history"),
        ("get", "/auth/me"),
        ("get", "/admin/users"),
        ("get", f"/attempts/{uuid.uuid4()}"),
    ]:
        r = getattr(client, method)(path)
        assert r.status_code == 401, path


def test_garbage_token_is_rejected(client):
    r = client.get("/packages", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_token_for_unknown_user_is_rejected(client):
    token = create_access_token(user_id=str(uuid.uuid4()), role="user")
    r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_admin_passes_admin_checks(client, admin_headers):
    r = client.get("/admin/users", headers=admin_headers)
    assert r.status_code == 200
