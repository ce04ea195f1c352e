import os
import sys
from datetime import datetime, timedelta

# Ensure project root is on PYTHONPATH
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from sqlalchemy.pool import StaticPool

from bookex.extensions import db
from bookex.models import Book, DeliveryConfirmation, User

BUYER_ID = 1
SELLER_ID = 2
OTHER_ID = 3


@pytest.fixture()
def app():
    from bookex import create_app

    config_overrides = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SQLALCHEMY_ENGINE_OPTIONS": {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        },
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "SECRET_KEY": "test-secret",
        "MAIL_API_KEY": "",
    }

    # ✅ IMPORTANT: pass overrides INTO create_app
    app = create_app(config_overrides=config_overrides)

    with app.app_context():
        db.drop_all()
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def frozen_clock(monkeypatch):
    clock = FrozenClock(datetime(2026, 3, 1, 10, 0, 0))
    monkeypatch.setattr("bookex.clock.utcnow", clock)
    return clock


@pytest.fixture()
def fixed_otp(monkeypatch):
    monkeypatch.setattr("bookex.services.delivery_otp.generate_otp", lambda: "482913")
    return "482913"


def ensure_user(user_id: int, is_blocked: bool = False):
    user = db.session.get(User, user_id)
    if user is None:
        user = User(
            id=user_id,
            email=f"user{user_id}@test.local",
            full_name=f"User {user_id}",
            is_blocked=is_blocked,
        )
        db.session.add(user)
        db.session.commit()
    else:
        user.is_blocked = is_blocked
        db.session.commit()
    return user


def make_book(seller_id: int = SELLER_ID, price: int = 100, title: str = "Godan", is_available: bool = True):
    ensure_user(seller_id)
    book = Book(title=title, author="Premchand", price=price, seller_id=seller_id, is_available=is_available)
    db.session.add(book)
    db.session.commit()
    return book


def login_session(client, user_id=BUYER_ID):
    ensure_user(user_id, is_blocked=False)
    with client.session_transaction() as sess:
        sess["user_id"] = user_id


def login_blocked_session(client, user_id=99):
    ensure_user(user_id, is_blocked=True)
    with client.session_transaction() as sess:
        sess["user_id"] = user_id


def create_request_via_api(client, book, buyer_id=BUYER_ID, offered_price=50, **extra):
    login_session(client, buyer_id)
    payload = {
        "book_id": book.id,
        "buyer_id": buyer_id,
        "seller_id": book.seller_id,
        "offered_price": offered_price,
        "transfer_mode": "self-transfer",
        **extra,
    }
    return client.post("/purchase-requests/", json=payload)


def accepted_request(client, price=100, offered_price=50):
    """Book + request creada por el comprador y aceptada por el vendedor."""
    book = make_book(price=price)
    r = create_request_via_api(client, book, offered_price=offered_price)
    assert r.status_code == 201
    request_id = r.get_json()["id"]

    login_session(client, SELLER_ID)
    r = client.patch(f"/purchase-requests/{request_id}/accept")
    assert r.status_code == 200
    return request_id


def confirmation_for(request_id):
    return DeliveryConfirmation.query.filter_by(purchase_request_id=request_id).one()
