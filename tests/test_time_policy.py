# tests/test_time_policy.py
from datetime import datetime, timedelta, timezone

from marketplace.config import time_policy as TP


def test_override_and_reset():
    fixed = datetime(2025, 1, 6, 9, 0)  # naive → UTC
    TP.set_now_utc_for_testing(fixed)
    try:
        assert TP.is_now_overridden()
        assert TP.now_utc() == fixed.replace(tzinfo=timezone.utc)
    finally:
        TP.set_now_utc_for_testing(None)
    assert not TP.is_now_overridden()
    assert TP.now_utc().tzinfo is not None


def test_aware_values_are_converted_to_utc():
    kst = timezone(timedelta(hours=9))
    dt = datetime(2025, 1, 6, 9, 0, tzinfo=kst)
    assert TP.ensure_aware_utc(dt) == datetime(2025, 1, 6, 0, 0, tzinfo=timezone.utc)
    assert TP.as_utc(None) is None


def test_auction_deadline():
    start = datetime(2025, 1, 6, tzinfo=timezone.utc)
    assert TP.auction_deadline(start, 72) == datetime(2025, 1, 9, tzinfo=timezone.utc)
