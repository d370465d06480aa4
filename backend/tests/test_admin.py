import uuid

from sqlalchemy import func, select

from app.models.attempt import QuizAnswer, QuizAttempt
from app.models.security_audit import SecurityAuditEvent

from conftest import make_package


def _question_body(package_id, order_index: int, *, correct: str = "C", text: str | None = None) -> dict:
    return {
        "package_id": str(package_id),
        "question_text": text or f"Question at {order_index}",
        "option_a": "alpha",
        "option_b": "beta",
        "option_c": "gamma",
        "option_d": "delta",
        "option_e": "epsilon",
        "correct_answer": correct,
        "order_index": order_index,
    }


def _create_package(client, headers, title="Algebra") -> str:
    r = client.post("/admin/packages", json={"title": title, "description": "basics"}, headers=headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["question_count"] == 0
    return body["id"]


def test_package_crud(client, db, admin, admin_headers):
    pid = _create_package(client, admin_headers)

    r = client.patch(f"/admin/packages/{pid}", json={"description": "updated"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["title"] == "Algebra"
    assert r.json()["description"] == "updated"

    r = client.get(f"/packages/{pid}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["created_by"] == str(admin.id)

    r = client.delete(f"/admin/packages/{pid}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    r = client.get(f"/packages/{pid}", headers=admin_headers)
    assert r.status_code == 404

    events = db.scalars(
        select(SecurityAuditEvent.event_type).where(SecurityAuditEvent.actor_user_id == admin.id)
    ).all()
    assert {"admin_create_package", "admin_update_package", "admin_delete_package"} <= set(events)


def test_update_missing_package(client, admin_headers):
    r = client.patch(f"/admin/packages/{uuid.uuid4()}", json={"title": "x"}, headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["error_code"] == "not_found"


def test_question_crud_and_answer_key_visibility(client, admin_headers, user_headers):
    pid = _create_package(client, admin_headers)

    r = client.post("/admin/questions", json=_question_body(pid, 0, correct="D"), headers=admin_headers)
    assert r.status_code == 200, r.text
    qid = r.json()["id"]
    assert r.json()["correct_answer"] == "D"

    r = client.patch(
        f"/admin/questions/{qid}",
        json={"question_text": "Rewritten", "correct_answer": "E"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["question_text"] == "Rewritten"
    assert r.json()["correct_answer"] == "E"
    assert r.json()["option_a"] == "alpha"

    r = client.get(f"/admin/questions/{qid}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["correct_answer"] == "E"

    r = client.get(f"/packages/{pid}/questions", headers=user_headers)
    assert r.status_code == 200
    assert r.json()["items"][0]["correct_answer"] is None

    r = client.get(f"/packages/{pid}/questions", headers=admin_headers)
    assert r.json()["items"][0]["correct_answer"] == "E"


def test_duplicate_order_index_is_rejected(client, admin_headers):
    pid = _create_package(client, admin_headers)
    assert client.post("/admin/questions", json=_question_body(pid, 0), headers=admin_headers).status_code == 200

    r = client.post("/admin/questions", json=_question_body(pid, 0), headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["error_code"] == "invalid_state"

    r = client.post("/admin/questions", json=_question_body(pid, 1), headers=admin_headers)
    qid = r.json()["id"]
    r = client.patch(f"/admin/questions/{qid}", json={"order_index": 0}, headers=admin_headers)
    assert r.status_code == 409


def test_question_for_missing_package(client, admin_headers):
    r = client.post("/admin/questions", json=_question_body(uuid.uuid4(), 0), headers=admin_headers)
    assert r.status_code == 404


def test_package_is_capped_at_110_questions(client, admin, admin_headers):
    pid = make_package(questions=110, created_by=admin.id)

    r = client.post("/admin/questions", json=_question_body(pid, 110), headers=admin_headers)
    assert r.status_code == 409
    assert "110" in r.json()["error_message"]


def test_deleting_question_renumbers_the_rest(client, admin_headers):
    pid = _create_package(client, admin_headers)
    ids = []
    for i in range(4):
        r = client.post("/admin/questions", json=_question_body(pid, i, text=f"Q{i}"), headers=admin_headers)
        ids.append(r.json()["id"])

    r = client.delete(f"/admin/questions/{ids[1]}", headers=admin_headers)
    assert r.status_code == 200

    r = client.get(f"/packages/{pid}/questions", headers=admin_headers)
    items = r.json()["items"]
    assert [q["order_index"] for q in items] == [0, 1, 2]
    assert [q["question_text"] for q in items] == ["Q0", "Q2", "Q3"]

    r = client.get(f"/admin/questions/{ids[1]}", headers=admin_headers)
    assert r.status_code == 404

    # The freed tail slot can be filled again.
    r = client.post("/admin/questions", json=_question_body(pid, 3), headers=admin_headers)
    assert r.status_code == 200


def test_deleting_question_drops_its_ledger_rows(client, db, admin, admin_headers, user_headers):
    pid = make_package(questions=110, created_by=admin.id)
    snap = client.post("/attempts", json={"package_id": str(pid)}, headers=user_headers).json()
    qid = snap["current_question"]["id"]
    client.post(
        f"/attempts/{snap['attempt_id']}/answers",
        json={"question_id": qid, "selected_answer": "A"},
        headers=user_headers,
    )

    r = client.delete(f"/admin/questions/{qid}", headers=admin_headers)
    assert r.status_code == 200

    n = db.scalar(select(func.count(QuizAnswer.id)).where(QuizAnswer.question_id == uuid.UUID(qid)))
    assert n == 0


def test_deleting_package_cascades(client, db, admin, admin_headers, user_headers):
    pid = make_package(questions=110, created_by=admin.id)
    snap = client.post("/attempts", json={"package_id": str(pid)}, headers=user_headers).json()
    client.post(
        f"/attempts/{snap['attempt_id']}/answers",
        json={"question_id": snap["current_question"]["id"], "selected_answer": "B"},
        headers=user_headers,
    )

    r = client.delete(f"/admin/packages/{pid}", headers=admin_headers)
    assert r.status_code == 200

    aid = uuid.UUID(snap["attempt_id"])
    assert db.scalar(select(func.count(QuizAttempt.id)).where(QuizAttempt.id == aid)) == 0
    assert db.scalar(select(func.count(QuizAnswer.id)).where(QuizAnswer.attempt_id == aid)) == 0

    r = client.get(f"/attempts/{aid}", headers=user_headers)
    assert r.json() is None


def test_package_listing_hides_incomplete_from_users(client, admin, admin_headers, user_headers):
    complete = str(make_package(questions=110, created_by=admin.id))
    partial = str(make_package(questions=5, created_by=admin.id))

    user_ids = {p["id"] for p in client.get("/packages", headers=user_headers).json()["items"]}
    assert complete in user_ids
    assert partial not in user_ids

    admin_items = {p["id"]: p for p in client.get("/packages", headers=admin_headers).json()["items"]}
    assert complete in admin_items
    assert admin_items[partial]["question_count"] == 5


def test_admin_user_management(client, admin_headers):
    email = f"new_{uuid.uuid4().hex[:8]}@example.com"

    r = client.post(
        "/admin/users",
        json={"email": email.upper(), "role": "user", "password": "longenough"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    new_id = r.json()["id"]

    r = client.post(
        "/admin/users",
        json={"email": email, "role": "user", "password": "longenough"},
        headers=admin_headers,
    )
    assert r.status_code == 409

    r = client.post(
        "/admin/users",
        json={"email": f"x{email}", "role": "user", "password": "123"},
        headers=admin_headers,
    )
    assert r.status_code == 400

    r = client.get("/admin/users", headers=admin_headers)
    assert r.status_code == 200
    rows = {u["id"]: u for u in r.json()["items"]}
    assert rows[new_id]["email"] == email
    assert rows[new_id]["role"] == "user"
    assert "password_hash" not in rows[new_id]

    r = client.post(
        "/auth/token",
        data={"username": email, "password": "longenough"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert r.status_code == 200
    client.cookies.clear()
