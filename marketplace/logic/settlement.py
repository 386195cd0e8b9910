# marketplace/logic/settlement.py
# 정산 오케스트레이션
# - 수락된 입찰 → 게이트웨이 결제 링크 (Order 스토어 경유, 멱등)
# - 게이트웨이 리다이렉트 콜백(완료/취소) → Order 상태 반영
from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from marketplace import models
from marketplace.config.settings import SETTINGS, Settings
from marketplace.crud import orders
from marketplace.errors import GatewayError, MarketError, StorageError
from marketplace.pg.types import PaymentGateway

logger = logging.getLogger(__name__)


def obtain_payment_link(
    db: Session,
    gateway: PaymentGateway,
    *,
    auction: models.Auction,
    bid: models.Bid,
) -> str:
    return orders.create_order(
        db,
        gateway,
        auction_id=auction.id,
        bid_id=bid.id,
        description=auction.description,
        price=bid.price,
        host_id=auction.host_id,
        issuer_id=bid.issuer_id,
    )


def order_redirect_uri(token: Optional[str], settings: Optional[Settings] = None) -> str:
    """앱으로 돌려보내는 주소. 예) app://order?id=<token>"""
    settings = settings or SETTINGS
    return f"{settings.order_redirect_uri}?{urlencode({'id': token or ''})}"


def complete_payment(
    db: Session,
    gateway: PaymentGateway,
    *,
    token: Optional[str],
    payer_id: Optional[str],
    settings: Optional[Settings] = None,
) -> str:
    """
    결제 완료 콜백. 내부 실패와 무관하게 항상 리다이렉트 주소를 돌려준다.
    게이트웨이/상태 문제는 warning, 저장소 장애와 예상 못한 예외는 error 로 남긴다.
    """
    redirect = order_redirect_uri(token, settings)
    if not token:
        logger.warning("[settlement] return callback without token")
        return redirect

    try:
        status = gateway.complete_order(token)
    except GatewayError as e:
        logger.warning("[settlement] capture failed token=%s: %s", token, e)
        return redirect
    except Exception:
        logger.exception("[settlement] capture crashed token=%s", token)
        return redirect

    try:
        orders.update_order(db, gateway_order_id=token, status=status, payer_id=payer_id or None)
    except StorageError:
        logger.error("[settlement] order update failed token=%s status=%s", token, status)
    except MarketError as e:
        logger.warning("[settlement] order not updated token=%s: %s", token, e)
    except Exception:
        db.rollback()
        logger.exception("[settlement] order update crashed token=%s status=%s", token, status)
    return redirect


def cancel_payment(
    db: Session,
    gateway: PaymentGateway,
    *,
    token: Optional[str],
    settings: Optional[Settings] = None,
) -> str:
    """
    결제 취소 콜백. 게이트웨이에서 아직 COMPLETED 가 아니면 PENDING 주문을 지운다.
    """
    redirect = order_redirect_uri(token, settings)
    if not token:
        logger.warning("[settlement] cancel callback without token")
        return redirect

    try:
        status = gateway.get_order_status(token)
    except GatewayError as e:
        logger.warning("[settlement] status lookup failed token=%s: %s", token, e)
        return redirect
    except Exception:
        logger.exception("[settlement] status lookup crashed token=%s", token)
        return redirect

    if status == orders.COMPLETED:
        logger.info("[settlement] cancel ignored, order already completed token=%s", token)
        return redirect

    try:
        orders.delete_order(db, gateway_order_id=token)
    except StorageError:
        logger.error("[settlement] order delete failed token=%s", token)
    except MarketError as e:
        logger.warning("[settlement] order not deleted token=%s: %s", token, e)
    except Exception:
        db.rollback()
        logger.exception("[settlement] order delete crashed token=%s", token)
    return redirect
