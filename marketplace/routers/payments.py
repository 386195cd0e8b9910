# marketplace/routers/payments.py
# 게이트웨이 리다이렉트 콜백: 결과와 상관없이 항상 앱으로 302
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..deps import get_db, get_gateway
from ..logic import settlement
from ..pg.types import PaymentGateway

router = APIRouter(tags=["payments"])


@router.get("/return", operation_id="Payments__Return")
def payment_return(
    token: Optional[str] = Query(None),
    payer_id: Optional[str] = Query(None, alias="PayerID"),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    url = settlement.complete_payment(db, gateway, token=token, payer_id=payer_id)
    return RedirectResponse(url, status_code=302)


@router.get("/cancel", operation_id="Payments__Cancel")
def payment_cancel(
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    url = settlement.cancel_payment(db, gateway, token=token)
    return RedirectResponse(url, status_code=302)
