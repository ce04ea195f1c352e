import pytest

from bookex.errors import IllegalTransition
from bookex.extensions import db
from bookex.models import Book, Notification, PurchaseRequest, RequestEvent
from bookex.services import request_lifecycle
from bookex.services.request_lifecycle import ALLOWED_TRANSITIONS, can_transition
from tests.conftest import (
    BUYER_ID,
    OTHER_ID,
    SELLER_ID,
    accepted_request,
    create_request_via_api,
    login_session,
    make_book,
)


def _pending_request(client, **kwargs):
    book = make_book(**kwargs)
    r = create_request_via_api(client, book)
    assert r.status_code == 201
    return r.get_json()["id"]


# ---------- TRANSITION TABLE ----------
def test_transition_table_only_allows_forward_edges():
    assert can_transition("pending", "accepted")
    assert can_transition("pending", "rejected")
    assert can_transition("accepted", "completed")

    assert not can_transition("pending", "completed")
    assert not can_transition("accepted", "rejected")
    assert not can_transition("rejected", "accepted")
    assert not can_transition("completed", "pending")
    assert ALLOWED_TRANSITIONS["rejected"] == frozenset()
    assert ALLOWED_TRANSITIONS["completed"] == frozenset()


# ---------- ACCEPT / REJECT ----------
def test_seller_accepts_pending_request(client):
    request_id = _pending_request(client)

    login_session(client, SELLER_ID)
    r = client.patch(f"/purchase-requests/{request_id}/accept")
    assert r.status_code == 200
    assert r.get_json()["result"] == "accepted"
    assert r.get_json()["status"] == "accepted"

    pr = db.session.get(PurchaseRequest, request_id)
    assert pr.status == "accepted"
    assert db.session.get(Book, pr.book_id).is_available is False

    n = Notification.query.filter_by(user_id=BUYER_ID, type="request_accepted").one()
    assert n.priority == "high"


def test_seller_rejects_pending_request(client):
    request_id = _pending_request(client)

    login_session(client, SELLER_ID)
    r = client.patch(f"/purchase-requests/{request_id}/reject")
    assert r.status_code == 200
    assert r.get_json()["result"] == "rejected"
    assert r.get_json()["status"] == "rejected"

    assert Notification.query.filter_by(user_id=BUYER_ID, type="request_rejected").count() == 1


def test_accept_after_reject_is_illegal_and_status_stays_rejected(client):
    request_id = _pending_request(client)

    login_session(client, SELLER_ID)
    assert client.patch(f"/purchase-requests/{request_id}/reject").status_code == 200

    r = client.patch(f"/purchase-requests/{request_id}/accept")
    assert r.status_code == 409
    data = r.get_json()
    assert data["error"] == "illegal_transition"
    assert data["current"] == "rejected"
    assert data["requested"] == "accepted"

    assert db.session.get(PurchaseRequest, request_id).status == "rejected"


def test_book_can_only_be_reserved_by_one_accepted_request(client):
    book = make_book()
    first_id = create_request_via_api(client, book, buyer_id=BUYER_ID).get_json()["id"]
    second_id = create_request_via_api(client, book, buyer_id=OTHER_ID).get_json()["id"]

    login_session(client, SELLER_ID)
    assert client.patch(f"/purchase-requests/{first_id}/accept").status_code == 200

    r = client.patch(f"/purchase-requests/{second_id}/accept")
    assert r.status_code == 409
    assert r.get_json()["error"] == "book_unavailable"

    assert db.session.get(PurchaseRequest, first_id).status == "accepted"
    assert db.session.get(PurchaseRequest, second_id).status == "pending"
    assert RequestEvent.query.filter_by(
        purchase_request_id=second_id, action=RequestEvent.Actions.ACCEPT
    ).count() == 0

    # el otro comprador todavía puede ser rechazado
    assert client.patch(f"/purchase-requests/{second_id}/reject").status_code == 200


def test_accept_twice_is_illegal(client):
    request_id = accepted_request(client)

    r = client.patch(f"/purchase-requests/{request_id}/accept")
    assert r.status_code == 409
    assert r.get_json()["current"] == "accepted"


def test_only_the_seller_can_decide(client):
    request_id = _pending_request(client)

    login_session(client, BUYER_ID)
    assert client.patch(f"/purchase-requests/{request_id}/accept").status_code == 403

    login_session(client, OTHER_ID)
    assert client.patch(f"/purchase-requests/{request_id}/reject").status_code == 403

    assert db.session.get(PurchaseRequest, request_id).status == "pending"


def test_decide_on_missing_request_is_not_found(client):
    login_session(client, SELLER_ID)
    r = client.patch("/purchase-requests/4040/accept")
    assert r.status_code == 404
    assert r.get_json()["error"] == "not_found"


def test_stale_accept_loses_to_concurrent_reject(app, client):
    request_id = _pending_request(client)
    pr = db.session.get(PurchaseRequest, request_id)

    # otra sesión rechazó entre la lectura y la escritura
    request_lifecycle.reject(request_id, SELLER_ID)
    pr.status = "pending"

    with db.session.no_autoflush, pytest.raises(IllegalTransition) as exc:
        request_lifecycle.accept(request_id, SELLER_ID)

    assert exc.value.context["current"] == "rejected"
    assert db.session.get(PurchaseRequest, request_id).status == "rejected"


# ---------- DELIVERY DATE ----------
def test_delivery_date_window_boundaries(client, frozen_clock):
    request_id = accepted_request(client)

    # today (2026-03-01) is too early
    r = client.patch(f"/purchase-requests/{request_id}/delivery-date", json={"date": "2026-03-01"})
    assert r.status_code == 400
    data = r.get_json()
    assert data["error"] == "invalid_date"
    assert data["earliest"] == "2026-03-02"
    assert data["latest"] == "2026-03-31"

    # today + 31 is too late
    r = client.patch(f"/purchase-requests/{request_id}/delivery-date", json={"date": "2026-04-01"})
    assert r.status_code == 400

    # today + 30 is the last allowed day
    r = client.patch(f"/purchase-requests/{request_id}/delivery-date", json={"date": "2026-03-31"})
    assert r.status_code == 200
    assert r.get_json()["result"] == "delivery_date_set"
    assert r.get_json()["expected_delivery_date"] == "2026-03-31"


def test_delivery_date_is_set_once_and_notifies_both_parties(client, frozen_clock):
    request_id = accepted_request(client)

    r = client.patch(f"/purchase-requests/{request_id}/delivery-date", json={"date": "2026-03-04"})
    assert r.status_code == 200
    assert r.get_json()["status"] == "accepted"

    r = client.patch(f"/purchase-requests/{request_id}/delivery-date", json={"date": "2026-03-05"})
    assert r.status_code == 409
    assert r.get_json()["error"] == "illegal_transition"

    assert db.session.get(PurchaseRequest, request_id).expected_delivery_date.isoformat() == "2026-03-04"

    buyer_n = Notification.query.filter_by(user_id=BUYER_ID, type="delivery_scheduled").one()
    seller_n = Notification.query.filter_by(user_id=SELLER_ID, type="delivery_scheduled").one()
    assert "2026-03-04" in buyer_n.message
    assert "2026-03-04" in seller_n.message


def test_delivery_date_requires_accepted_request(client, frozen_clock):
    request_id = _pending_request(client)

    login_session(client, SELLER_ID)
    r = client.patch(f"/purchase-requests/{request_id}/delivery-date", json={"date": "2026-03-04"})
    assert r.status_code == 409
    assert r.get_json()["current"] == "pending"


def test_delivery_date_only_by_seller(client, frozen_clock):
    request_id = accepted_request(client)

    login_session(client, BUYER_ID)
    r = client.patch(f"/purchase-requests/{request_id}/delivery-date", json={"date": "2026-03-04"})
    assert r.status_code == 403


def test_delivery_date_must_be_a_date(client):
    request_id = accepted_request(client)

    r = client.patch(f"/purchase-requests/{request_id}/delivery-date", json={"date": "next week"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_payload"


# ---------- COMPLETE ----------
def test_complete_marks_book_sold_and_is_idempotent(app, client):
    request_id = accepted_request(client)

    request_lifecycle.complete(request_id)
    pr = db.session.get(PurchaseRequest, request_id)
    assert pr.status == "completed"
    assert db.session.get(Book, pr.book_id).sold_at is not None

    request_lifecycle.complete(request_id)
    assert RequestEvent.query.filter_by(
        purchase_request_id=request_id, action=RequestEvent.Actions.COMPLETE
    ).count() == 1


def test_complete_from_pending_is_illegal(app, client):
    request_id = _pending_request(client)

    with pytest.raises(IllegalTransition):
        request_lifecycle.complete(request_id)

    assert db.session.get(PurchaseRequest, request_id).status == "pending"


# ---------- HISTORY ----------
def test_history_lists_transitions_in_order(client, frozen_clock):
    request_id = accepted_request(client)
    client.patch(f"/purchase-requests/{request_id}/delivery-date", json={"date": "2026-03-04"})

    r = client.get(f"/purchase-requests/{request_id}/history")
    assert r.status_code == 200
    actions = [e["action"] for e in r.get_json()["items"]]
    assert actions == [
        RequestEvent.Actions.CREATE,
        RequestEvent.Actions.ACCEPT,
        RequestEvent.Actions.SET_DELIVERY_DATE,
    ]

    login_session(client, OTHER_ID)
    assert client.get(f"/purchase-requests/{request_id}/history").status_code == 403
