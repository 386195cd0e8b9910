# tests/test_migrations.py
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def migrated(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    cfg = Config()
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)
    command.upgrade(cfg, "head")
    eng = create_engine(url)
    yield cfg, eng
    eng.dispose()


def test_upgrade_creates_tables_and_indexes(migrated):
    _, eng = migrated
    insp = inspect(eng)
    assert {"users", "auctions", "bids", "payments"} <= set(insp.get_table_names())

    bid_indexes = {ix["name"]: ix for ix in insp.get_indexes("bids")}
    assert bid_indexes["uq_bid_one_selected_per_auction"]["unique"]
    payment_uniques = {uc["name"] for uc in insp.get_unique_constraints("payments")}
    assert "uq_payment_once_per_bid" in payment_uniques


def test_one_selected_bid_per_auction(migrated):
    _, eng = migrated
    with eng.begin() as conn:
        conn.execute(text(
            "INSERT INTO auctions (id, host_id, description, offer, created_at, deadline) "
            "VALUES ('a1', 'alice', '', 10, '2025-01-06 00:00:00', '2025-01-09 00:00:00')"
        ))
        for bid_id, issuer, selected in [("b1", "bob", 1), ("b2", "carol", 0)]:
            conn.execute(
                text(
                    "INSERT INTO bids (id, auction_id, issuer_id, price, created_at, selected) "
                    "VALUES (:id, 'a1', :issuer, 5, '2025-01-06 00:00:00', :sel)"
                ),
                {"id": bid_id, "issuer": issuer, "sel": selected},
            )

    with pytest.raises(IntegrityError):
        with eng.begin() as conn:
            conn.execute(text("UPDATE bids SET selected = 1 WHERE id = 'b2'"))


def test_downgrade_drops_tables(migrated):
    cfg, eng = migrated
    command.downgrade(cfg, "base")
    names = set(inspect(eng).get_table_names())
    assert not {"auctions", "bids", "payments"} & names
