# marketplace/routers/auctions.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..crud import auctions as store
from ..deps import get_db, get_gateway
from ..pg.types import PaymentGateway
from ..security import get_current_user_id

router = APIRouter(prefix="/auctions", tags=["auctions"])


# -------------------------------------------------------------------
# 경매 생성 / 목록 / 단건 / 삭제
# -------------------------------------------------------------------
@router.post(
    "",
    response_model=schemas.AuctionOut,
    status_code=status.HTTP_201_CREATED,
    summary="경매 생성 (마감 = 지금 + 72h)",
    operation_id="Auctions__Create",
)
def auctions_create(
    body: schemas.AuctionCreate = Body(...),
    caller_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return store.create_auction(db, host_id=caller_id, description=body.description, offer=body.offer)


@router.get(
    "",
    response_model=List[schemas.AuctionOut],
    summary="경매 피드 (최신순, 페이지 고정 크기)",
    operation_id="Auctions__List",
)
def auctions_list(
    page: Optional[int] = Query(None, description="1부터. 비우거나 1 미만이면 1"),
    db: Session = Depends(get_db),
):
    return store.get_auctions(db, page)


@router.get(
    "/accepted",
    response_model=List[schemas.AuctionOut],
    summary="내 입찰이 수락된 경매",
    operation_id="Auctions__AcceptedBids",
)
def auctions_accepted(
    caller_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return store.accepted_bids(db, caller_id=caller_id)


@router.get("/{auction_id}", response_model=schemas.AuctionOut, operation_id="Auctions__Get")
def auctions_get(auction_id: str, db: Session = Depends(get_db)):
    return store.get_auction(db, auction_id)


@router.delete("/{auction_id}", response_model=schemas.OkOut, operation_id="Auctions__Delete")
def auctions_delete(
    auction_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return {"ok": store.delete_auction(db, caller_id=caller_id, auction_id=auction_id)}


# -------------------------------------------------------------------
# 입찰
# -------------------------------------------------------------------
@router.post(
    "/{auction_id}/bids",
    response_model=schemas.BidOut,
    status_code=status.HTTP_201_CREATED,
    summary="입찰 (마감 전, 호스트 불가, 1인 1건)",
    operation_id="Auctions__CreateBid",
)
def bids_create(
    auction_id: str,
    body: schemas.BidCreate = Body(...),
    caller_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return store.create_bid(
        db,
        issuer_id=caller_id,
        auction_id=auction_id,
        proposed_deadline=body.proposed_deadline,
        price=body.price,
    )


@router.delete("/{auction_id}/bids/{bid_id}", response_model=schemas.OkOut, operation_id="Auctions__DeleteBid")
def bids_delete(
    auction_id: str,
    bid_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return {"ok": store.delete_bid(db, issuer_id=caller_id, auction_id=auction_id, bid_id=bid_id)}


@router.post(
    "/{auction_id}/bids/{bid_id}/accept",
    response_model=schemas.OkOut,
    summary="입찰 수락 (경매당 1건)",
    operation_id="Auctions__AcceptBid",
)
def bids_accept(
    auction_id: str,
    bid_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return {"ok": store.accept_bid(db, host_id=caller_id, auction_id=auction_id, bid_id=bid_id)}


@router.post(
    "/{auction_id}/bids/{bid_id}/payment-link",
    response_model=schemas.PaymentLinkOut,
    summary="수락된 입찰의 결제 링크 (멱등)",
    operation_id="Auctions__BidPaymentLink",
)
def bids_payment_link(
    auction_id: str,
    bid_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    url = store.bid_payment_link(db, gateway, host_id=caller_id, auction_id=auction_id, bid_id=bid_id)
    return {"url": url}
