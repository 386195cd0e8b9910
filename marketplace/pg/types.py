# marketplace/pg/types.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol


@dataclass
class GatewayOrder:
    """
    게이트웨이에 생성된 결제 주문을 우리 내부 표현으로 통일한 모델.
    """
    # PG 쪽 주문 번호: 콜백의 token 으로 다시 돌아온다
    gateway_order_id: str

    # 결제자가 승인하러 가는 URL
    approval_url: str

    # PG 측 상태 (예: "CREATED", "PAYER_ACTION_REQUIRED")
    pg_status: Optional[str] = None

    # 디버깅/로깅용 원본 응답
    pg_raw: Optional[dict[str, Any]] = None


class PaymentGateway(Protocol):
    """
    결제 게이트웨이 경계. 실패 시에는 GatewayError 를 던진다.
    """

    def create_order(self, amount: str, description: str) -> GatewayOrder: ...

    def get_order_status(self, gateway_order_id: str) -> str: ...

    def complete_order(self, gateway_order_id: str) -> str: ...
