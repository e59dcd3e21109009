from tests.conftest import ASSIGNMENT_ID, REVIEWER_ID, STUDENT_ID


def actor_header(actor_id: str) -> dict:
    return {"X-Actor-Id": actor_id}


def submit(client, content="draft", assignment_id=ASSIGNMENT_ID, student=STUDENT_ID, **headers):
    return client.post(
        f"/assignments/{assignment_id}/submissions",
        headers={**actor_header(student), **headers},
        json={"content": content},
    )


def decide(client, submission_id, decision, notes=None):
    return client.post(
        f"/submissions/{submission_id}/decision",
        headers=actor_header(REVIEWER_ID),
        json={"decision": decision, "notes": notes},
    )


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_submit_creates_first_version(client):
    r = submit(client, "first")
    assert r.status_code == 201, r.text

    body = r.json()
    assert body["version"] == 1
    assert body["status"] == "pending"
    assert body["student_id"] == STUDENT_ID
    assert body["content"] == "first"
    assert body["reviewed_at"] is None
    assert "X-Request-ID" in r.headers


def test_submit_requires_actor(client):
    r = client.post(f"/assignments/{ASSIGNMENT_ID}/submissions", json={"content": "x"})
    assert r.status_code == 401


def test_submit_rejects_empty_content(client):
    r = submit(client, "")
    assert r.status_code == 422


def test_resubmit_while_pending_is_not_allowed(client):
    assert submit(client, "first").status_code == 201

    r = submit(client, "second")
    assert r.status_code == 403, r.text
    body = r.json()
    assert body["kind"] == "not_allowed"
    assert body["retryable"] is False
    assert body["detail"]


def test_decline_then_resubmit_creates_new_version(client):
    first = submit(client, "first").json()

    r = decide(client, first["id"], "declined", notes="add sources")
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "declined"
    assert r.json()["reviewed_by"] == REVIEWER_ID
    assert r.json()["notes"] == "add sources"

    r2 = submit(client, "second")
    assert r2.status_code == 201, r2.text
    assert r2.json()["version"] == 2
    assert r2.json()["id"] != first["id"]


def test_second_decision_reports_not_pending(client):
    s = submit(client).json()
    assert decide(client, s["id"], "approved").status_code == 200

    r = decide(client, s["id"], "declined")
    assert r.status_code == 409
    assert r.json()["kind"] == "not_pending"

    current = client.get(f"/submissions/{s['id']}", headers=actor_header(STUDENT_ID)).json()
    assert current["status"] == "approved"


def test_decision_on_superseded_version_is_stale(client):
    v1 = submit(client, "v1").json()
    decide(client, v1["id"], "declined")
    submit(client, "v2")

    r = decide(client, v1["id"], "approved")
    assert r.status_code == 409
    assert r.json()["kind"] == "stale_review"


def test_invalid_decision_is_rejected(client):
    s = submit(client).json()
    r = decide(client, s["id"], "pending")
    assert r.status_code == 422


def test_unknown_submission(client):
    r = client.get("/submissions/missing", headers=actor_header(STUDENT_ID))
    assert r.status_code == 404
    assert r.json()["kind"] == "not_found"

    r = decide(client, "missing", "approved")
    assert r.status_code == 404


def test_submit_to_unknown_assignment(client):
    r = submit(client, assignment_id="nope")
    assert r.status_code == 404
    assert r.json()["kind"] == "not_found"


def test_idempotency_key_replays_submission(client):
    r1 = submit(client, "once", **{"Idempotency-Key": "abc"})
    r2 = submit(client, "once", **{"Idempotency-Key": "abc"})

    assert r1.status_code == 201
    assert r2.status_code == 201
    assert r2.json()["id"] == r1.json()["id"]


def test_history_endpoint(client):
    v1 = submit(client, "v1").json()
    decide(client, v1["id"], "declined")
    submit(client, "v2")

    r = client.get(f"/students/{STUDENT_ID}/history", headers=actor_header(STUDENT_ID))
    assert r.status_code == 200, r.text
    (thread,) = r.json()
    assert thread["assignment_id"] == ASSIGNMENT_ID
    assert thread["assignment_name"] == "Essay draft"
    assert thread["current_status"] == "pending"
    assert thread["latest_version"] == 2
    assert thread["can_resubmit"] is False
    assert [s["version"] for s in thread["submissions"]] == [2, 1]


def test_history_for_unknown_student_is_empty(client):
    r = client.get("/students/nobody/history", headers=actor_header(STUDENT_ID))
    assert r.status_code == 200
    assert r.json() == []


def test_thread_endpoint_for_empty_thread(client):
    r = client.get(
        f"/assignments/{ASSIGNMENT_ID}/students/{STUDENT_ID}/thread",
        headers=actor_header(STUDENT_ID),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["current_status"] == "not_submitted"
    assert body["latest_version"] == 0
    assert body["can_resubmit"] is True
    assert body["submissions"] == []


def test_pending_reviews_endpoint(client):
    s = submit(client).json()
    submit(client, student="student-2")
    decide(client, s["id"], "approved")

    r = client.get("/reviews/pending", headers=actor_header(REVIEWER_ID))
    assert r.status_code == 200
    assert [row["student_id"] for row in r.json()] == ["student-2"]


def test_create_assignment(client):
    r = client.post(
        "/assignments",
        headers=actor_header(REVIEWER_ID),
        json={"id": "hw9", "name": "Final project"},
    )
    assert r.status_code == 201, r.text
    assert r.json()["id"] == "hw9"

    dup = client.post(
        "/assignments",
        headers=actor_header(REVIEWER_ID),
        json={"id": "hw9", "name": "Again"},
    )
    assert dup.status_code == 409
    assert dup.json()["kind"] == "conflict"
