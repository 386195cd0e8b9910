# marketplace/routers/orders.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..crud import orders as store
from ..deps import get_db
from ..security import get_current_user_id

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get(
    "",
    response_model=List[schemas.OrderOut],
    summary="내가 연 경매의 결제 목록",
    operation_id="Orders__List",
)
def orders_list(
    caller_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return store.get_orders(db, host_id=caller_id)


@router.get(
    "/{order_id}",
    response_model=schemas.OrderOut,
    summary="결제 단건 (호스트 또는 해당 입찰자만)",
    operation_id="Orders__Get",
)
def orders_get(
    order_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return store.get_order(db, caller_id=caller_id, order_id=order_id)
