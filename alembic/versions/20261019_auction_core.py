"""create auctions, bids, payments (+ users profile for joins)

Revision ID: 20261019_auction_core
Revises:
Create Date: 2026-10-19 10:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_auction_core"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(name: str) -> bool:
    insp = sa.inspect(op.get_bind())
    return insp.has_table(name)


def upgrade() -> None:
    # 1) users: 외부 프로필 서비스와 공유하는 DB 면 이미 있을 수 있다
    if not _has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("name", sa.String()),
            sa.Column("nickname", sa.String()),
            sa.Column("picture", sa.String()),
        )

    # 2) auctions
    op.create_table(
        "auctions",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("host_id", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("offer", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_auctions_host_id", "auctions", ["host_id"])
    op.create_index("ix_auction_created", "auctions", ["created_at"])

    # 3) bids: 경매 삭제 시 함께 삭제
    op.create_table(
        "bids",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "auction_id",
            sa.String(length=32),
            sa.ForeignKey("auctions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("issuer_id", sa.String(length=64), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("proposed_deadline", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("selected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("auction_id", "issuer_id", name="uq_bid_once_per_issuer"),
    )
    op.create_index("ix_bids_issuer_id", "bids", ["issuer_id"])
    op.create_index(
        "uq_bid_one_selected_per_auction",
        "bids",
        ["auction_id"],
        unique=True,
        sqlite_where=sa.text("selected = 1"),
        postgresql_where=sa.text("selected"),
    )

    # 4) payments: auction/bid 는 약한 참조 (FK 없음)
    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("auction_id", sa.String(length=32), nullable=False),
        sa.Column("bid_id", sa.String(length=32), nullable=False),
        sa.Column("gateway_order_id", sa.String(length=64), unique=True),
        sa.Column("payment_url", sa.String()),
        sa.Column("payer_id", sa.String(length=64)),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("host_id", sa.String(length=64), nullable=False),
        sa.Column("issuer_id", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("auction_id", "bid_id", name="uq_payment_once_per_bid"),
    )
    op.create_index("ix_payments_host_id", "payments", ["host_id"])
    op.create_index("ix_payment_status", "payments", ["status"])


def downgrade() -> None:
    op.drop_index("ix_payment_status", table_name="payments")
    op.drop_index("ix_payments_host_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("uq_bid_one_selected_per_auction", table_name="bids")
    op.drop_index("ix_bids_issuer_id", table_name="bids")
    op.drop_table("bids")
    op.drop_index("ix_auction_created", table_name="auctions")
    op.drop_index("ix_auctions_host_id", table_name="auctions")
    op.drop_table("auctions")
    # users 는 프로필 서비스 소유일 수 있으므로 남겨둔다
