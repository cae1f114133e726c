import hashlib
import hmac
import json
import time

from interviewer.services import credits, payments, purchases

WEBHOOK_SECRET = "whsec_test_secret"
URL = "/api/v1/webhooks/stripe"


def _signed(event: dict, secret: str = WEBHOOK_SECRET, timestamp: int | None = None):
    payload = json.dumps(event)
    ts = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return payload, {"stripe-signature": f"t={ts},v1={signature}", "content-type": "application/json"}


def _event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_1", "object": "event", "type": event_type, "data": {"object": obj}}


def _post(client, event, **kwargs):
    payload, headers = _signed(event, **kwargs)
    return client.post(URL, content=payload, headers=headers)


def test_completed_checkout_credits_once(client, packages, db):
    purchases.initiate(db, "u1", "starter", "cs_1")
    event = _event("checkout.session.completed", {"id": "cs_1", "payment_status": "paid"})

    resp = _post(client, event)
    assert resp.status_code == 200
    assert resp.json() == {"received": True}
    assert credits.get_balance(db, "u1").available_credits == 100

    # Redelivery
    assert _post(client, event).status_code == 200
    assert credits.get_balance(db, "u1").available_credits == 100


def test_unpaid_completion_waits_for_async_success(client, packages, db):
    purchases.initiate(db, "u1", "starter", "cs_2")
    _post(client, _event("checkout.session.completed", {"id": "cs_2", "payment_status": "unpaid"}))
    assert purchases.get_purchase(db, "u1", "cs_2").type == "purchase_pending"

    _post(client, _event("checkout.session.async_payment_succeeded", {"id": "cs_2", "payment_status": "paid"}))
    assert purchases.get_purchase(db, "u1", "cs_2").type == "purchase"
    assert credits.get_balance(db, "u1").available_credits == 100


def test_expired_checkout_marks_failed(client, packages, db):
    purchases.initiate(db, "u1", "starter", "cs_3")
    resp = _post(client, _event("checkout.session.expired", {"id": "cs_3"}))
    assert resp.status_code == 200
    row = purchases.get_purchase(db, "u1", "cs_3")
    assert row.type == "purchase_failed"
    assert row.details["reason"] == "expired"


def test_failed_payment_intent_is_traced_to_session(client, packages, db, monkeypatch):
    purchases.initiate(db, "u1", "starter", "cs_4")
    monkeypatch.setattr(payments, "find_checkout_session_id", lambda pi: "cs_4" if pi == "pi_4" else None)
    resp = _post(client, _event("payment_intent.payment_failed", {"id": "pi_4"}))
    assert resp.status_code == 200
    assert purchases.get_purchase(db, "u1", "cs_4").type == "purchase_failed"


def test_unknown_session_still_acknowledged(client, packages, db):
    resp = _post(client, _event("checkout.session.completed", {"id": "cs_missing", "payment_status": "paid"}))
    assert resp.status_code == 200
    assert resp.json() == {"received": True}


def test_unhandled_event_type_acknowledged(client):
    assert _post(client, _event("customer.created", {"id": "cus_1"})).status_code == 200


def test_missing_signature_rejected(client):
    resp = client.post(URL, content=json.dumps(_event("checkout.session.completed", {"id": "cs_1"})))
    assert resp.status_code == 400


def test_bad_signature_rejected(client, packages, db):
    purchases.initiate(db, "u1", "starter", "cs_5")
    event = _event("checkout.session.completed", {"id": "cs_5", "payment_status": "paid"})
    resp = _post(client, event, secret="whsec_wrong")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Webhook signature verification failed"
    assert credits.get_balance(db, "u1").available_credits == 0


def test_stale_signature_rejected(client):
    event = _event("checkout.session.completed", {"id": "cs_6", "payment_status": "paid"})
    resp = _post(client, event, timestamp=int(time.time()) - 3600)
    assert resp.status_code == 400


def test_storage_failure_asks_for_retry(client, packages, db, monkeypatch):
    purchases.initiate(db, "u1", "starter", "cs_7")

    def broken_confirm(db, ref):
        raise credits.LedgerStorageError("confirm_purchase")

    monkeypatch.setattr(purchases, "confirm", broken_confirm)
    resp = _post(client, _event("checkout.session.completed", {"id": "cs_7", "payment_status": "paid"}))
    assert resp.status_code == 503
    monkeypatch.undo()
    assert purchases.get_purchase(db, "u1", "cs_7").type == "purchase_pending"


def test_undecodable_body_rejected(client, packages, db):
    purchases.initiate(db, "u1", "starter", "cs_8")
    payload = b"\xff\xfe{"
    ts = int(time.time())
    signature = hmac.new(WEBHOOK_SECRET.encode(), str(ts).encode() + b"." + payload, hashlib.sha256).hexdigest()
    resp = client.post(URL, content=payload, headers={"stripe-signature": f"t={ts},v1={signature}"})
    assert resp.status_code == 400
    assert credits.get_balance(db, "u1").available_credits == 0


def test_signed_non_json_body_rejected(client):
    payload = "not json"
    ts = int(time.time())
    signature = hmac.new(WEBHOOK_SECRET.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    resp = client.post(URL, content=payload, headers={"stripe-signature": f"t={ts},v1={signature}"})
    assert resp.status_code == 400
