# marketplace/models.py
# 경매(Auction) / 입찰(Bid) / 결제(Order=payments) 모델 + 조인용 프로필(User)
import enum
import uuid

from sqlalchemy import (
    Column, String, DateTime, Float, ForeignKey, Text, Boolean,
    Index, UniqueConstraint, text, false,
)
from sqlalchemy.orm import relationship

from .database import Base
from .config.time_policy import now_utc


def new_id() -> str:
    return uuid.uuid4().hex


# -------------------------------------------------------
# 👤 User (프로필: 외부 프로필 서비스 소유, 여기서는 읽기 전용 조인용)
# -------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)  # 호출자 식별자(caller id)
    name = Column(String, nullable=True)
    nickname = Column(String, nullable=True)
    picture = Column(String, nullable=True)

    def __repr__(self):
        return f"<User(id='{self.id}', nickname='{self.nickname}')>"


# -------------------------------------------------------
# 🔨 Auction
# -------------------------------------------------------
class Auction(Base):
    __tablename__ = "auctions"

    id = Column(String(32), primary_key=True, default=new_id)
    host_id = Column(String(64), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    offer = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)
    # 생성 후 변경 불가
    deadline = Column(DateTime(timezone=True), nullable=False)

    bids = relationship(
        "Bid",
        back_populates="auction",
        cascade="all, delete-orphan",
        order_by="Bid.created_at",
        passive_deletes=True,
    )
    host = relationship(
        "User",
        primaryjoin="foreign(Auction.host_id) == User.id",
        viewonly=True,
        lazy="joined",
    )

    __table_args__ = (
        Index("ix_auction_created", "created_at"),
    )


# -------------------------------------------------------
# 💰 Bid (경매에 종속, 경매 삭제 시 함께 삭제)
# -------------------------------------------------------
class Bid(Base):
    __tablename__ = "bids"

    id = Column(String(32), primary_key=True, default=new_id)
    auction_id = Column(String(32), ForeignKey("auctions.id", ondelete="CASCADE"), nullable=False)
    issuer_id = Column(String(64), nullable=False, index=True)
    price = Column(Float, nullable=False)
    proposed_deadline = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)
    selected = Column(Boolean, nullable=False, default=False, server_default=false())

    auction = relationship("Auction", back_populates="bids")

    __table_args__ = (
        UniqueConstraint("auction_id", "issuer_id", name="uq_bid_once_per_issuer"),
        # 경매당 selected=true 인 입찰은 최대 1건
        Index(
            "uq_bid_one_selected_per_auction",
            "auction_id",
            unique=True,
            sqlite_where=text("selected = 1"),
            postgresql_where=text("selected"),
        ),
    )


# -------------------------------------------------------
# 🧾 Order (payments): (auction_id, bid_id) 당 1건
# -------------------------------------------------------
class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class Order(Base):
    __tablename__ = "payments"

    id = Column(String(32), primary_key=True, default=new_id)

    # 약한 참조: FK/캐스케이드 없음 (경매가 지워져도 감사용으로 남는다)
    auction_id = Column(String(32), nullable=False)
    bid_id = Column(String(32), nullable=False)

    # 게이트웨이 주문 생성 전(선점 상태)에는 NULL
    gateway_order_id = Column(String(64), nullable=True, unique=True)
    payment_url = Column(String, nullable=True)
    payer_id = Column(String(64), nullable=True)

    # 캡처 시 게이트웨이가 돌려준 상태 문자열을 그대로 저장
    status = Column(String(32), nullable=False, default=OrderStatus.PENDING.value)

    # 생성 시점 스냅샷
    host_id = Column(String(64), nullable=False, index=True)
    issuer_id = Column(String(64), nullable=False)
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc)

    __table_args__ = (
        UniqueConstraint("auction_id", "bid_id", name="uq_payment_once_per_bid"),
        Index("ix_payment_status", "status"),
    )
