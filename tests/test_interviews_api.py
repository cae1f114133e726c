from interviewer.domain.models import CreditTransaction
from interviewer.services import credits, realtime

SESSIONS = "/api/v1/interviews/sessions"


def _start(client, headers, minutes=30, **extra):
    body = {"role": "frontend-developer", "level": "senior", "type": "technical", "duration_minutes": minutes}
    body.update(extra)
    return client.post(SESSIONS, headers=headers, json=body)


def test_start_reserves_and_complete_refunds(client, auth_headers, db):
    credits.initialize_account(db, "u1")
    headers = auth_headers("u1")

    started = _start(client, headers, minutes=30)
    assert started.status_code == 201
    body = started.json()
    assert body["reserved_credits"] == 10
    assert body["available_credits"] == 40
    assert body["realtime"] is None
    session_id = body["session_id"]

    done = client.post(f"{SESSIONS}/{session_id}/complete", headers=headers, json={"duration_minutes": 15})
    assert done.status_code == 200
    result = done.json()
    assert result["outcome"] == "applied"
    assert result["charged_credits"] == 5
    assert result["refunded_credits"] == 5
    assert result["available_credits"] == 45

    again = client.post(f"{SESSIONS}/{session_id}/complete", headers=headers, json={"duration_minutes": 15})
    assert again.status_code == 200
    assert again.json()["outcome"] == "already_processed"
    assert credits.get_balance(db, "u1").available_credits == 45


def test_start_without_enough_credits(client, auth_headers, db):
    credits.initialize_account(db, "u1", bonus_credits=8)
    resp = _start(client, auth_headers("u1"), minutes=30)
    assert resp.status_code == 402
    assert "need 10 credits" in resp.json()["detail"]
    assert "have 8" in resp.json()["detail"]
    assert db.query(CreditTransaction).filter_by(user_id="u1", type="reservation").count() == 0


def test_realtime_failure_releases_reservation(client, auth_headers, db, monkeypatch):
    credits.initialize_account(db, "u1")

    def failing_session(**kwargs):
        raise realtime.RealtimeSessionError("upstream down")

    monkeypatch.setattr(realtime, "create_realtime_session", failing_session)
    resp = _start(client, auth_headers("u1"))
    assert resp.status_code == 502
    assert credits.get_balance(db, "u1").available_credits == 50
    assert db.query(CreditTransaction).filter_by(user_id="u1", type="reservation").count() == 0


def test_realtime_session_passed_through(client, auth_headers, db, monkeypatch):
    credits.initialize_account(db, "u1")
    seen = {}

    def fake_session(**kwargs):
        seen.update(kwargs)
        return {"id": "sess_rt", "client_secret": {"value": "ek_123"}}

    monkeypatch.setattr(realtime, "create_realtime_session", fake_session)
    resp = _start(client, auth_headers("u1"), custom_requirements="Focus on React")
    assert resp.json()["realtime"]["client_secret"]["value"] == "ek_123"
    assert seen["interview_type"] == "technical"
    assert seen["custom_requirements"] == "Focus on React"


def test_complete_unknown_or_foreign_session(client, auth_headers, db):
    credits.initialize_account(db, "u1")
    started = _start(client, auth_headers("u1")).json()
    url = f"{SESSIONS}/{started['session_id']}/complete"
    assert client.post(url, headers=auth_headers("u2"), json={"duration_minutes": 10}).status_code == 404
    assert client.post(f"{SESSIONS}/nope/complete", headers=auth_headers("u1"), json={"duration_minutes": 10}).status_code == 404


def test_start_validates_duration(client, auth_headers):
    assert _start(client, auth_headers("u1"), minutes=0).status_code == 422
    assert _start(client, auth_headers("u1"), minutes=500).status_code == 422


def test_analyze_response(client, auth_headers):
    text = (
        "In my last project I led the team through a database migration because the old schema "
        "could not scale. For example, I designed a phased approach and we improved performance."
    )
    resp = client.post(
        "/api/v1/interviews/analyze-response",
        headers=auth_headers("u1"),
        json={"user_response": text, "context": {"type": "technical", "level": "senior"}},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert 0 <= body["score"] <= 100
    assert body["category"] in {"technical", "behavioral", "problem-solving"}
    assert "database" in body["keywords"]


def test_analyze_blank_response(client, auth_headers):
    resp = client.post(
        "/api/v1/interviews/analyze-response",
        headers=auth_headers("u1"),
        json={"user_response": "   "},
    )
    assert resp.status_code == 400
