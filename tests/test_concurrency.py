# tests/test_concurrency.py
# 동시 요청: 파일 SQLite + 스레드 (세션은 워커마다 따로)
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from marketplace.config.time_policy import now_utc
from marketplace.crud import auctions as store
from marketplace.crud import orders
from marketplace.database import Base, make_engine
from marketplace.errors import ConflictError
from marketplace.models import Bid, Order, new_id
from marketplace.pg.client import DummyPaymentGateway

WORKERS = 8


class SlowGateway(DummyPaymentGateway):
    def create_order(self, amount, description):
        time.sleep(0.05)
        return super().create_order(amount, description)


@pytest.fixture
def factory(tmp_path):
    eng = make_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=eng)
    yield sessionmaker(bind=eng, autoflush=False, autocommit=False)
    eng.dispose()


def _race(factory, work):
    """WORKERS 개 스레드를 Barrier 로 맞춰 동시에 출발시킨다. 결과 또는 예외 목록."""
    barrier = threading.Barrier(WORKERS)

    def run(i):
        with factory() as s:
            barrier.wait()
            try:
                return work(s, i)
            except Exception as e:
                return e

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        return list(pool.map(run, range(WORKERS)))


def _open_auction(factory):
    with factory() as s:
        return store.create_auction(s, host_id="alice", description="race", offer=100).id


def test_same_issuer_bids_once(factory):
    aid = _open_auction(factory)

    results = _race(
        factory,
        lambda s, i: store.create_bid(
            s,
            issuer_id="bob",
            auction_id=aid,
            proposed_deadline=now_utc() + timedelta(days=3),
            price=50 + i,
        ),
    )

    created = [r for r in results if isinstance(r, Bid)]
    assert len(created) == 1
    assert all(isinstance(r, ConflictError) for r in results if not isinstance(r, Bid))
    with factory() as s:
        assert s.scalar(select(func.count()).select_from(Bid).where(Bid.auction_id == aid)) == 1


def test_concurrent_accepts_select_one_bid(factory):
    aid = _open_auction(factory)
    bid_ids = []
    with factory() as s:
        for i in range(WORKERS):
            bid = store.create_bid(
                s,
                issuer_id=f"user{i}",
                auction_id=aid,
                proposed_deadline=None,
                price=10 + i,
            )
            bid_ids.append(bid.id)

    results = _race(
        factory,
        lambda s, i: store.accept_bid(s, host_id="alice", auction_id=aid, bid_id=bid_ids[i]),
    )

    assert results == [True] * WORKERS
    with factory() as s:
        selected = s.scalars(select(Bid.id).where(Bid.auction_id == aid, Bid.selected.is_(True))).all()
    assert len(selected) == 1
    assert selected[0] in bid_ids


def test_concurrent_payment_links_create_one_gateway_order(factory):
    gateway = SlowGateway()
    aid, bid_id = new_id(), new_id()

    results = _race(
        factory,
        lambda s, i: orders.create_order(
            s,
            gateway,
            auction_id=aid,
            bid_id=bid_id,
            description="race",
            price=90,
            host_id="alice",
            issuer_id="bob",
        ),
    )

    urls = {r for r in results if isinstance(r, str)}
    assert len(urls) == 1
    assert all(isinstance(r, (str, ConflictError)) for r in results)
    assert len(gateway.created) == 1

    with factory() as s:
        rows = s.scalars(select(Order)).all()
    assert len(rows) == 1
    assert rows[0].payment_url in urls
