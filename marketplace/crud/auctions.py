# marketplace/crud/auctions.py
# 경매 스토어: 경매 생성/삭제/조회, 입찰 생성/삭제/수락, 결제 링크 요청
#
# 모든 변경은 조건부 단일 SQL 문으로 판정과 적용을 한 번에 한다.
# 유니크 제약: 발행자당 입찰 1건, 경매당 selected 1건
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean, DateTime, Float, String, delete, exists, insert, literal, select, update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, selectinload

from marketplace.config.feature_flags import FEATURE_FLAGS
from marketplace.config.settings import SETTINGS
from marketplace.config.time_policy import as_utc, auction_deadline, ensure_aware_utc, now_utc
from marketplace.errors import (
    ConflictError,
    ExpiredError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
)
from marketplace.logic import settlement
from marketplace.models import Auction, Bid, new_id
from marketplace.pg.types import PaymentGateway
from .common import require_id, resolve_page, storage_errors

logger = logging.getLogger(__name__)


def _require_auction(db: Session, auction_id: str) -> Auction:
    with storage_errors(db, "load auction"):
        auction = db.get(Auction, auction_id)
    if not auction:
        raise NotFoundError("Auction not found")
    return auction


# =========================================================
# 🔨 Auction
# =========================================================
def create_auction(db: Session, *, host_id: str, description: str, offer: float) -> Auction:
    now = now_utc()
    auction = Auction(
        id=new_id(),
        host_id=host_id,
        description=description,
        offer=float(offer),
        created_at=now,
        deadline=auction_deadline(now, SETTINGS.auction_window_hours),
    )
    with storage_errors(db, "create auction"):
        db.add(auction)
        db.commit()
        db.refresh(auction)
    logger.info("[auction] created id=%s host=%s offer=%s", auction.id, host_id, offer)
    return auction


def delete_auction(db: Session, *, caller_id: str, auction_id: str) -> bool:
    """
    호스트 본인만 삭제 가능. 소유권 검사는 DELETE 조건 자체에 들어간다.
    (입찰 유무/마감 경과 제한은 FEATURE_FLAGS 로만 켠다)
    """
    require_id("auctionID", auction_id)
    now = now_utc()

    conds = [Auction.id == auction_id, Auction.host_id == caller_id]
    if FEATURE_FLAGS.get("BLOCK_DELETE_WITH_BIDS"):
        conds.append(~exists().where(Bid.auction_id == Auction.id))
    if FEATURE_FLAGS.get("BLOCK_DELETE_AFTER_DEADLINE"):
        conds.append(Auction.deadline > now)

    with storage_errors(db, "delete auction"):
        deleted = db.execute(
            delete(Auction).where(*conds).execution_options(synchronize_session=False)
        ).rowcount
        db.commit()

    if deleted:
        logger.info("[auction] deleted id=%s by=%s", auction_id, caller_id)
        return True

    # 0건 → 이유 판정
    auction = _require_auction(db, auction_id)
    if auction.host_id != caller_id:
        raise UnauthorizedError("Could not delete auction")
    with storage_errors(db, "load bids"):
        has_bids = bool(auction.bids)
    if FEATURE_FLAGS.get("BLOCK_DELETE_WITH_BIDS") and has_bids:
        raise ConflictError("Auction already has bids")
    if FEATURE_FLAGS.get("BLOCK_DELETE_AFTER_DEADLINE") and as_utc(auction.deadline) <= now:
        raise ConflictError("Auction is already closed")
    raise StorageError("Could not delete auction")


def get_auction(db: Session, auction_id: str) -> Auction:
    require_id("auctionID", auction_id)
    return _require_auction(db, auction_id)


def get_auctions(db: Session, page: Optional[int] = None) -> List[Auction]:
    """최신순 정렬 후 페이지 단위로 자른다. 호스트 프로필은 조인해서 같이 싣는다."""
    page = resolve_page(page)
    size = SETTINGS.page_size
    q = (
        select(Auction)
        .options(selectinload(Auction.bids))
        .order_by(Auction.created_at.desc(), Auction.id.desc())
        .offset(size * (page - 1))
        .limit(size)
    )
    with storage_errors(db, "load auctions"):
        return list(db.scalars(q).all())


def accepted_bids(db: Session, *, caller_id: str) -> List[Auction]:
    """호출자의 입찰이 수락된(남이 연) 경매 목록."""
    mine_selected = exists().where(
        Bid.auction_id == Auction.id,
        Bid.issuer_id == caller_id,
        Bid.selected.is_(True),
    )
    q = (
        select(Auction)
        .options(selectinload(Auction.bids))
        .where(Auction.host_id != caller_id, mine_selected)
        .order_by(Auction.created_at.desc())
    )
    with storage_errors(db, "load accepted bids"):
        return list(db.scalars(q).all())


# =========================================================
# 💰 Bid
# =========================================================
def create_bid(
    db: Session,
    *,
    issuer_id: str,
    auction_id: str,
    proposed_deadline: Optional[datetime],
    price: float,
) -> Bid:
    require_id("auctionID", auction_id)
    now = now_utc()
    bid_id = new_id()
    if proposed_deadline is not None:
        proposed_deadline = ensure_aware_utc(proposed_deadline)

    # 마감 전 + 호스트 아님 조건을 만족할 때만 INSERT 되는 단일 문장
    guarded = select(
        literal(bid_id, String),
        Auction.id,
        literal(issuer_id, String),
        literal(float(price), Float),
        literal(proposed_deadline, DateTime(timezone=True)),
        literal(now, DateTime(timezone=True)),
        literal(False, Boolean),
    ).where(
        Auction.id == auction_id,
        Auction.host_id != issuer_id,
        Auction.deadline > now,
    )
    stmt = insert(Bid.__table__).from_select(
        ["id", "auction_id", "issuer_id", "price", "proposed_deadline", "created_at", "selected"],
        guarded,
    )

    with storage_errors(db, "create bid"):
        try:
            inserted = db.execute(stmt).rowcount
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("You can't have more than 1 bid in the same auction")

    if not inserted:
        auction = _require_auction(db, auction_id)
        if auction.host_id == issuer_id:
            raise ForbiddenError("You can't make a bid in your own auction")
        if as_utc(auction.deadline) <= now:
            raise ExpiredError("This auction is no longer accepting bids")
        raise StorageError("Could not create bid")

    with storage_errors(db, "load bid"):
        bid = db.get(Bid, bid_id)
    logger.info("[bid] created id=%s auction=%s issuer=%s price=%s", bid_id, auction_id, issuer_id, price)
    return bid


def delete_bid(db: Session, *, issuer_id: str, auction_id: str, bid_id: str) -> bool:
    """발행자 본인 + 아직 수락 전인 입찰만 지운다."""
    require_id("auctionID", auction_id)
    require_id("bidID", bid_id)

    stmt = (
        delete(Bid)
        .where(
            Bid.id == bid_id,
            Bid.auction_id == auction_id,
            Bid.issuer_id == issuer_id,
            Bid.selected.is_(False),
        )
        .execution_options(synchronize_session=False)
    )
    with storage_errors(db, "delete bid"):
        deleted = db.execute(stmt).rowcount
        db.commit()

    if deleted:
        logger.info("[bid] deleted id=%s auction=%s", bid_id, auction_id)
        return True

    _require_auction(db, auction_id)
    with storage_errors(db, "load bid"):
        bid = db.get(Bid, bid_id)
    if not bid or bid.auction_id != auction_id or bid.issuer_id != issuer_id:
        raise NotFoundError("Could not delete bid")
    if bid.selected:
        raise ConflictError("Can't delete a bid that was already accepted")
    raise StorageError("Could not delete bid")


def accept_bid(db: Session, *, host_id: str, auction_id: str, bid_id: str) -> bool:
    """
    bid_id 와 정확히 일치하는 입찰을, 경매에 선택된 입찰이 아직 없을 때만 선택한다.
    이미 다른(혹은 같은) 입찰이 선택돼 있으면 아무것도 바꾸지 않고 성공으로 본다.
    """
    require_id("auctionID", auction_id)
    require_id("bidID", bid_id)

    auction = _require_auction(db, auction_id)
    if auction.host_id != host_id:
        raise UnauthorizedError("Unauthorized")

    other = aliased(Bid)
    already_selected = exists().where(other.auction_id == auction_id, other.selected.is_(True))
    stmt = (
        update(Bid)
        .where(Bid.id == bid_id, Bid.auction_id == auction_id, ~already_selected)
        .values(selected=True)
        .execution_options(synchronize_session=False)
    )

    with storage_errors(db, "accept bid"):
        try:
            updated = db.execute(stmt).rowcount
            db.commit()
        except IntegrityError:
            # 동시에 다른 수락이 먼저 들어감 (부분 유니크 인덱스)
            db.rollback()
            logger.info("[bid] accept raced auction=%s bid=%s → no-op", auction_id, bid_id)
            return True

    if updated:
        logger.info("[bid] accepted id=%s auction=%s", bid_id, auction_id)
        return True

    with storage_errors(db, "load bid"):
        bid = db.get(Bid, bid_id)
    if not bid or bid.auction_id != auction_id:
        raise NotFoundError("Bid not found")
    return True


def bid_payment_link(
    db: Session,
    gateway: PaymentGateway,
    *,
    host_id: str,
    auction_id: str,
    bid_id: str,
) -> str:
    require_id("auctionID", auction_id)

    auction = _require_auction(db, auction_id)
    if auction.host_id != host_id:
        raise UnauthorizedError("Unauthorized")

    with storage_errors(db, "load bids"):
        bid = next((b for b in auction.bids if b.id == bid_id), None)
    if bid is None:
        raise NotFoundError("Could not generate link")
    if not bid.selected:
        raise ConflictError("You need to accept this bid first")

    return settlement.obtain_payment_link(db, gateway, auction=auction, bid=bid)
