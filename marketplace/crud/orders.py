# marketplace/crud/orders.py
# 결제(Order) 스토어
#
# 상태: (없음) → PENDING → COMPLETED(종결) 또는 PENDING → (삭제)
# (auction_id, bid_id) 유니크 키로 결제 링크 생성을 멱등하게 만든다.
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.config.settings import SETTINGS
from marketplace.config.time_policy import as_utc, now_utc
from marketplace.errors import ConflictError, NotFoundError, UnauthorizedError
from marketplace.models import Order, OrderStatus, new_id
from marketplace.pg.types import PaymentGateway
from .common import storage_errors

logger = logging.getLogger(__name__)

COMPLETED = OrderStatus.COMPLETED.value
PENDING = OrderStatus.PENDING.value


def to_gateway_amount(price: float) -> str:
    """게이트웨이에는 소수 둘째 자리 문자열로 보낸다. 예) 90 → "90.00" """
    if price is None or not math.isfinite(price) or price <= 0:
        raise ConflictError("Bid price is not a payable amount")
    return str(Decimal(str(price)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _find_by_key(db: Session, auction_id: str, bid_id: str) -> Optional[Order]:
    with storage_errors(db, "load order"):
        return db.scalars(
            select(Order).where(Order.auction_id == auction_id, Order.bid_id == bid_id)
        ).first()


def _find_by_gateway_id(db: Session, gateway_order_id: str) -> Optional[Order]:
    with storage_errors(db, "load order"):
        return db.scalars(select(Order).where(Order.gateway_order_id == gateway_order_id)).first()


def _claim(
    db: Session,
    *,
    auction_id: str,
    bid_id: str,
    description: str,
    price: float,
    host_id: str,
    issuer_id: str,
) -> Optional[Tuple[str, datetime]]:
    """
    게이트웨이 호출 전에 (auction_id, bid_id) 행을 먼저 선점한다.
    성공하면 (order id, 선점 시각). 유니크 키 충돌이면 다른 요청이 먼저 선점한 것 → None.
    """
    now = now_utc()
    order = Order(
        id=new_id(),
        auction_id=auction_id,
        bid_id=bid_id,
        status=PENDING,
        host_id=host_id,
        issuer_id=issuer_id,
        amount=float(price),
        description=description,
        created_at=now,
        updated_at=now,
    )
    order_id = order.id
    with storage_errors(db, "create order"):
        try:
            db.add(order)
            db.commit()
        except IntegrityError:
            db.rollback()
            return None
    return order_id, now


def _reclaim_if_stale(db: Session, order: Order) -> Optional[datetime]:
    """URL 없이 오래 방치된 선점 행(죽은 요청)을 다시 가져온다. 성공하면 새 선점 시각."""
    now = now_utc()
    cutoff = now - timedelta(seconds=SETTINGS.order_claim_stale_seconds)
    if as_utc(order.updated_at) >= cutoff:
        return None
    stmt = (
        update(Order)
        .where(Order.id == order.id, Order.payment_url.is_(None), Order.updated_at < cutoff)
        .values(updated_at=now)
        .execution_options(synchronize_session=False)
    )
    with storage_errors(db, "reclaim order"):
        updated = db.execute(stmt).rowcount
        db.commit()
    if not updated:
        return None
    logger.warning("[order] stale claim re-taken id=%s auction=%s bid=%s", order.id, order.auction_id, order.bid_id)
    return now


def _mine(order_id: str, claimed_at: datetime):
    # 내 선점인지: URL 이 아직 없고 선점 시각이 그대로일 때만
    return (
        Order.id == order_id,
        Order.payment_url.is_(None),
        Order.updated_at == claimed_at,
    )


def _release(db: Session, order_id: str, claimed_at: datetime) -> None:
    with storage_errors(db, "release order claim"):
        db.execute(
            delete(Order)
            .where(*_mine(order_id, claimed_at))
            .execution_options(synchronize_session=False)
        )
        db.commit()


def create_order(
    db: Session,
    gateway: PaymentGateway,
    *,
    auction_id: str,
    bid_id: str,
    description: str,
    price: float,
    host_id: str,
    issuer_id: str,
) -> str:
    """
    결제 링크 발급 (멱등).

    - PENDING 이 이미 있으면 그 URL 을 그대로 돌려준다 (게이트웨이 호출 없음)
    - COMPLETED 면 Conflict
    - 없으면 행을 선점 → 게이트웨이 주문 생성 → URL 저장
    - 선점 이후 어떤 실패든 내 선점은 풀고 예외를 그대로 올린다
    """
    amount = to_gateway_amount(price)

    claim = _claim(
        db,
        auction_id=auction_id,
        bid_id=bid_id,
        description=description,
        price=price,
        host_id=host_id,
        issuer_id=issuer_id,
    )

    if claim is None:
        existing = _find_by_key(db, auction_id, bid_id)
        if existing is None:
            # 선점 직후 취소 콜백으로 지워진 경우: 호출자가 다시 시도
            raise ConflictError("Payment link is being regenerated, try again")
        if existing.status == COMPLETED:
            raise ConflictError("This bid was already settled")
        if existing.payment_url:
            return existing.payment_url
        claimed_at = _reclaim_if_stale(db, existing)
        if claimed_at is None:
            raise ConflictError("Payment link is being generated, try again")
        claim = (existing.id, claimed_at)

    order_id, claimed_at = claim
    try:
        gw = gateway.create_order(amount, description)
        with storage_errors(db, "save order"):
            saved = db.execute(
                update(Order)
                .where(*_mine(order_id, claimed_at))
                .values(
                    gateway_order_id=gw.gateway_order_id,
                    payment_url=gw.approval_url,
                    updated_at=now_utc(),
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()
    except Exception:
        db.rollback()
        _release(db, order_id, claimed_at)
        raise

    if not saved:
        # 그사이 다른 요청이 선점을 가져감 → 이 게이트웨이 주문은 버린다
        logger.warning(
            "[order] claim lost id=%s gateway=%s auction=%s bid=%s",
            order_id, gw.gateway_order_id, auction_id, bid_id,
        )
        raise ConflictError("Payment link is being generated, try again")

    logger.info(
        "[order] created id=%s gateway=%s auction=%s bid=%s amount=%s",
        order_id, gw.gateway_order_id, auction_id, bid_id, amount,
    )
    return gw.approval_url


def get_order(db: Session, *, caller_id: str, order_id: str) -> Order:
    """경매 호스트 또는 해당 입찰 발행자만 조회 가능."""
    with storage_errors(db, "load order"):
        order = db.scalars(
            select(Order).where(or_(Order.gateway_order_id == order_id, Order.id == order_id))
        ).first()
    if not order:
        raise NotFoundError("Order not found")
    if caller_id not in (order.host_id, order.issuer_id):
        raise UnauthorizedError("Unauthorized")
    return order


def get_orders(db: Session, *, host_id: str) -> List[Order]:
    q = select(Order).where(Order.host_id == host_id).order_by(Order.created_at.desc())
    with storage_errors(db, "load orders"):
        return list(db.scalars(q).all())


def update_order(db: Session, *, gateway_order_id: str, status: str, payer_id: Optional[str]) -> bool:
    """결제 완료 콜백에서 호출. COMPLETED 행은 더 이상 바뀌지 않는다."""
    stmt = (
        update(Order)
        .where(Order.gateway_order_id == gateway_order_id, Order.status != COMPLETED)
        .values(status=status, payer_id=payer_id, updated_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    with storage_errors(db, "update order"):
        updated = db.execute(stmt).rowcount
        db.commit()

    if updated:
        logger.info("[order] gateway=%s status=%s payer=%s", gateway_order_id, status, payer_id)
        return True

    order = _find_by_gateway_id(db, gateway_order_id)
    if order is not None and order.status == COMPLETED:
        raise ConflictError("Order already completed")
    raise NotFoundError("Order not found")


def delete_order(db: Session, *, gateway_order_id: str) -> bool:
    """결제 취소 콜백에서 호출. PENDING 만 지울 수 있다."""
    stmt = (
        delete(Order)
        .where(Order.gateway_order_id == gateway_order_id, Order.status != COMPLETED)
        .execution_options(synchronize_session=False)
    )
    with storage_errors(db, "delete order"):
        deleted = db.execute(stmt).rowcount
        db.commit()

    if deleted:
        logger.info("[order] deleted gateway=%s", gateway_order_id)
        return True

    if _find_by_gateway_id(db, gateway_order_id) is not None:
        raise ConflictError("Cannot delete a completed order")
    raise NotFoundError("Order not found")
