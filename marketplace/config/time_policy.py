# marketplace/config/time_policy.py
# 시간 유틸 (v1)
# - 모든 반환값은 timezone-aware UTC(datetime)
# - 테스트에서는 set_now_utc_for_testing() 으로 현재시각을 고정한다

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

UTC = timezone.utc

# 테스트/진단에서 현재시각을 고정하기 위한 오버라이드 저장소
_TEST_NOW_UTC: Optional[datetime] = None


def set_now_utc_for_testing(dt: Optional[datetime]) -> None:
    """
    dt가 None이면 오버라이드 해제. dt가 naive면 UTC로 간주.
    """
    global _TEST_NOW_UTC
    if dt is None:
        _TEST_NOW_UTC = None
    else:
        _TEST_NOW_UTC = ensure_aware_utc(dt)


def is_now_overridden() -> bool:
    return _TEST_NOW_UTC is not None


def now_utc() -> datetime:
    if _TEST_NOW_UTC is not None:
        return _TEST_NOW_UTC
    return datetime.now(UTC)


def ensure_aware_utc(dt: datetime) -> datetime:
    """naive면 UTC로 붙여서 반환, aware면 그대로 UTC로 변환."""
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    SQLite 는 tz 정보 없이 저장하므로 DB 에서 나온 값은 UTC 로 간주한다.
    """
    if dt is None:
        return None
    return ensure_aware_utc(dt)


def auction_deadline(created_at: datetime, window_hours: float) -> datetime:
    return ensure_aware_utc(created_at) + timedelta(hours=window_hours)


__all__ = [
    "UTC",
    "set_now_utc_for_testing", "is_now_overridden",
    "now_utc", "ensure_aware_utc", "as_utc",
    "auction_deadline",
]
