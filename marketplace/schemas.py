# marketplace/schemas.py
# 경매 / 입찰 / 결제 API 스키마 (Pydantic v2)
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from marketplace.config.time_policy import as_utc


# ─────────────────────────────────────────────────────────
# 공통 ORM 베이스
# ─────────────────────────────────────────────────────────
class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------- Profile (조인용) ----------------
class FeedUserOut(ORMModel):
    name: Optional[str] = None
    nickname: Optional[str] = None
    picture: Optional[str] = None


# ---------------- Bid ----------------
class BidCreate(BaseModel):
    price: float = Field(gt=0, allow_inf_nan=False)
    proposed_deadline: datetime = Field(description="입찰자가 제안하는 작업 마감일")

    model_config = ConfigDict(extra="ignore")


class BidOut(ORMModel):
    id: str
    issuer_id: str
    price: float
    proposed_deadline: Optional[datetime] = None
    created_at: datetime
    selected: bool

    @field_validator("proposed_deadline", "created_at")
    @classmethod
    def _utc(cls, v):
        # SQLite 에서는 tz 없이 나오므로 UTC 로 붙여서 내보낸다
        return as_utc(v)


# ---------------- Auction ----------------
class AuctionCreate(BaseModel):
    description: str = Field(default="", max_length=2000)
    offer: float = Field(gt=0, allow_inf_nan=False)

    model_config = ConfigDict(extra="ignore")


class AuctionOut(ORMModel):
    id: str
    host_id: str
    host: Optional[FeedUserOut] = None
    description: str
    offer: float
    created_at: datetime
    deadline: datetime
    bids: List[BidOut] = []

    @field_validator("created_at", "deadline")
    @classmethod
    def _utc(cls, v):
        return as_utc(v)


# ---------------- Order ----------------
class OrderOut(ORMModel):
    id: str
    auction_id: str
    bid_id: str
    gateway_order_id: Optional[str] = None
    payment_url: Optional[str] = None
    payer_id: Optional[str] = None
    status: str
    amount: float
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v):
        return as_utc(v)


class PaymentLinkOut(BaseModel):
    url: str


class OkOut(BaseModel):
    ok: bool
