# marketplace/deps.py
# 라우터 공용 의존성
from fastapi import Request

from marketplace.database import get_db  # noqa: F401  (라우터에서 같이 import)
from marketplace.pg.types import PaymentGateway


def get_gateway(request: Request) -> PaymentGateway:
    """lifespan 에서 한 번 만든 게이트웨이 인스턴스를 꺼낸다."""
    return request.app.state.gateway
