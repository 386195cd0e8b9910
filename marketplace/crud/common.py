# marketplace/crud/common.py
# 스토어 공용 유틸 (ID 검증 / 페이지 보정 / 스토리지 에러 래핑)
from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.errors import InvalidIdError, StorageError

logger = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def require_id(field: str, value: Optional[str]) -> str:
    if not isinstance(value, str) or not _ID_RE.match(value):
        raise InvalidIdError(field, value)
    return value


def resolve_page(page: Optional[int]) -> int:
    """None 이나 1 미만은 1페이지로 본다."""
    if page is None or page < 1:
        return 1
    return int(page)


@contextmanager
def storage_errors(db: Session, what: str) -> Iterator[None]:
    """
    IntegrityError 는 호출부가 해석하도록 그대로 올리고,
    나머지 DB 에러는 롤백 후 StorageError 로 바꾼다.
    """
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("[store] %s failed", what)
        raise StorageError(f"Could not {what}") from e
