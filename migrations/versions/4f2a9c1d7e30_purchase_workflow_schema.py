"""Purchase workflow schema: requests, delivery confirmations, notifications, audit, reviews

Revision ID: 4f2a9c1d7e30
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "4f2a9c1d7e30"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=120), nullable=True),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("average_rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "books",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("author", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sold_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_books_title", "books", ["title"])
    op.create_index("ix_books_author", "books", ["author"])
    op.create_index("ix_books_seller_id", "books", ["seller_id"])

    op.create_table(
        "purchase_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("book_id", sa.Integer(), sa.ForeignKey("books.id"), nullable=False),
        sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("offered_price", sa.Integer(), nullable=False),
        sa.Column("transfer_mode", sa.String(length=20), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("expected_delivery_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("buyer_id <> seller_id", name="ck_purchase_requests_distinct_parties"),
        sa.CheckConstraint("offered_price > 0", name="ck_purchase_requests_positive_offer"),
    )
    op.create_index("ix_purchase_requests_book_id", "purchase_requests", ["book_id"])
    op.create_index("ix_purchase_requests_buyer_id", "purchase_requests", ["buyer_id"])
    op.create_index("ix_purchase_requests_seller_id", "purchase_requests", ["seller_id"])
    op.create_index("ix_purchase_requests_status_created", "purchase_requests", ["status", "created_at"])

    op.create_table(
        "delivery_confirmations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("purchase_request_id", sa.Integer(), sa.ForeignKey("purchase_requests.id"), nullable=False),
        sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("otp_code", sa.String(length=6), nullable=False),
        sa.Column("otp_sent_at", sa.DateTime(), nullable=False),
        sa.Column("otp_verified_at", sa.DateTime(), nullable=True),
        sa.Column("otp_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("buyer_confirmed_delivery", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("seller_confirmed_delivery", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("buyer_confirmed_payment", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("seller_confirmed_payment", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payment_method", sa.String(length=40), nullable=True),
        sa.Column("final_payout_processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("seller_payout", sa.Integer(), nullable=True),
        sa.Column("platform_fee", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("purchase_request_id", name="uq_delivery_confirmations_request"),
    )
    op.create_index("ix_delivery_confirmations_buyer_id", "delivery_confirmations", ["buyer_id"])
    op.create_index("ix_delivery_confirmations_seller_id", "delivery_confirmations", ["seller_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("related_id", sa.String(length=64), nullable=True),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="normal"),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
    op.create_index("ix_notifications_user_read_created", "notifications", ["user_id", "read", "created_at"])

    op.create_table(
        "request_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("purchase_request_id", sa.Integer(), sa.ForeignKey("purchase_requests.id"), nullable=False),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("from_status", sa.String(length=20), nullable=True),
        sa.Column("to_status", sa.String(length=20), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_request_events_purchase_request_id", "request_events", ["purchase_request_id"])
    op.create_index("ix_request_events_action", "request_events", ["action"])
    op.create_index("ix_request_events_created_at", "request_events", ["created_at"])

    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reviewer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reviewed_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("book_id", sa.Integer(), sa.ForeignKey("books.id"), nullable=False),
        sa.Column("purchase_request_id", sa.Integer(), sa.ForeignKey("purchase_requests.id"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("review_text", sa.Text(), nullable=True),
        sa.Column("review_type", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("reviewer_id", "purchase_request_id", name="uq_reviews_reviewer_request"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )
    op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"])
    op.create_index("ix_reviews_reviewed_user_id", "reviews", ["reviewed_user_id"])


def downgrade():
    op.drop_table("reviews")
    op.drop_table("request_events")
    op.drop_table("notifications")
    op.drop_table("delivery_confirmations")
    op.drop_table("purchase_requests")
    op.drop_table("books")
    op.drop_table("users")
