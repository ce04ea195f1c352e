from bookex.extensions import db
from bookex.models import User
from tests.conftest import BUYER_ID, OTHER_ID, SELLER_ID, accepted_request, login_session


def _completed_request(client, fixed_otp):
    request_id = accepted_request(client)
    client.post(f"/delivery/{request_id}/otp")

    login_session(client, BUYER_ID)
    client.post(f"/delivery/{request_id}/otp/verify", json={"otp_code": fixed_otp})
    client.post(f"/delivery/{request_id}/confirm-delivery")

    login_session(client, SELLER_ID)
    client.post(f"/delivery/{request_id}/confirm-delivery")

    login_session(client, BUYER_ID)
    client.post(f"/delivery/{request_id}/confirm-payment", json={"payment_method": "upi"})

    login_session(client, SELLER_ID)
    r = client.post(f"/delivery/{request_id}/confirm-payment")
    assert r.get_json()["final_payout_processed"] is True
    return request_id


def test_review_requires_completed_request(client):
    request_id = accepted_request(client)

    login_session(client, BUYER_ID)
    r = client.post("/reviews/", json={"purchase_request_id": request_id, "rating": 5})
    assert r.status_code == 409
    assert r.get_json()["error"] == "illegal_transition"


def test_buyer_reviews_seller_and_rating_is_recomputed(client, fixed_otp):
    request_id = _completed_request(client, fixed_otp)

    login_session(client, BUYER_ID)
    r = client.post("/reviews/", json={
        "purchaseRequestId": request_id,
        "rating": 4,
        "reviewText": "Book as described",
    })
    assert r.status_code == 201
    data = r.get_json()
    assert data["review_type"] == "buyer_to_seller"
    assert data["reviewed_user_id"] == SELLER_ID

    seller = db.session.get(User, SELLER_ID)
    assert seller.average_rating == 4.0
    assert seller.review_count == 1


def test_seller_reviews_buyer(client, fixed_otp):
    request_id = _completed_request(client, fixed_otp)

    login_session(client, SELLER_ID)
    r = client.post("/reviews/", json={"purchase_request_id": request_id, "rating": 5})
    assert r.status_code == 201
    assert r.get_json()["review_type"] == "seller_to_buyer"
    assert db.session.get(User, BUYER_ID).average_rating == 5.0


def test_one_review_per_party_per_request(client, fixed_otp):
    request_id = _completed_request(client, fixed_otp)

    login_session(client, BUYER_ID)
    assert client.post("/reviews/", json={"purchase_request_id": request_id, "rating": 3}).status_code == 201

    r = client.post("/reviews/", json={"purchase_request_id": request_id, "rating": 1})
    assert r.status_code == 409
    assert r.get_json()["error"] == "duplicate_review"
    assert db.session.get(User, SELLER_ID).average_rating == 3.0


def test_rating_out_of_range_is_rejected(client, fixed_otp):
    request_id = _completed_request(client, fixed_otp)

    login_session(client, BUYER_ID)
    r = client.post("/reviews/", json={"purchase_request_id": request_id, "rating": 6})
    assert r.status_code == 400
    assert r.get_json()["fields"] == ["rating"]


def test_outsider_cannot_review(client, fixed_otp):
    request_id = _completed_request(client, fixed_otp)

    login_session(client, OTHER_ID)
    r = client.post("/reviews/", json={"purchase_request_id": request_id, "rating": 2})
    assert r.status_code == 403


def test_user_reviews_listing(client, fixed_otp):
    request_id = _completed_request(client, fixed_otp)
    login_session(client, BUYER_ID)
    client.post("/reviews/", json={"purchase_request_id": request_id, "rating": 4})

    r = client.get(f"/reviews/user/{SELLER_ID}")
    assert r.status_code == 200
    data = r.get_json()
    assert data["average_rating"] == 4.0
    assert data["review_count"] == 1
    assert [i["rating"] for i in data["items"]] == [4]

    assert client.get("/reviews/user/9999").status_code == 404
