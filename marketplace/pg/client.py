# marketplace/pg/client.py

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Optional

import requests

from marketplace.config.settings import Settings
from marketplace.errors import GatewayError
from .types import GatewayOrder, PaymentGateway

logger = logging.getLogger(__name__)

COMPLETED = "COMPLETED"


class PayPalGateway:
    """
    PayPal REST v2 (checkout/orders) 클라이언트.

    - OAuth2 client_credentials 토큰을 캐시해서 재사용
    - 모든 호출에 timeout 을 걸고, 실패해도 자동 재시도하지 않는다
      (호출자가 에러를 보고 다시 시도)
    """

    def __init__(
        self,
        *,
        client_id: str,
        secret: str,
        api_base: str,
        payee_email: str,
        return_url: str,
        cancel_url: str,
        currency: str = "BRL",
        brand_name: str = "Cancanvas",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.client_id = client_id
        self.secret = secret
        self.api_base = api_base.rstrip("/")
        self.payee_email = payee_email
        self.return_url = return_url
        self.cancel_url = cancel_url
        self.currency = currency
        self.brand_name = brand_name
        self.timeout = timeout
        self.session = session or requests.Session()

        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0

    @classmethod
    def from_settings(cls, settings: Settings, session: Optional[requests.Session] = None) -> "PayPalGateway":
        server = settings.server_url.rstrip("/")
        return cls(
            client_id=settings.paypal_client_id,
            secret=settings.paypal_secret,
            api_base=settings.paypal_api_base,
            payee_email=settings.paypal_email,
            return_url=f"{server}/return",
            cancel_url=f"{server}/cancel",
            currency=settings.payment_currency,
            brand_name=settings.brand_name,
            timeout=settings.gateway_timeout_seconds,
            session=session,
        )

    # -------------------------------------------------
    # 내부 HTTP 헬퍼
    # -------------------------------------------------
    def _access_token(self) -> str:
        # 만료 30초 전이면 새로 받는다
        if self._token and time.monotonic() < self._token_expires_at - 30:
            return self._token

        try:
            resp = self.session.post(
                f"{self.api_base}/v1/oauth2/token",
                auth=(self.client_id, self.secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise GatewayError(f"paypal token request failed: {e}") from e

        if resp.status_code >= 400:
            raise GatewayError(
                "paypal token request rejected",
                status_code=resp.status_code,
                payload=_safe_json(resp),
            )

        data = _safe_json(resp) or {}
        token = data.get("access_token")
        if not token:
            raise GatewayError("paypal token response without access_token", payload=data)

        try:
            expires_in = float(data.get("expires_in") or 0)
        except (TypeError, ValueError):
            raise GatewayError("paypal token response with bad expires_in", payload=data)

        self._token = token
        self._token_expires_at = time.monotonic() + expires_in
        return token

    def _call(self, method: str, path: str, json: Optional[dict] = None) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._access_token()}",
            "Content-Type": "application/json",
        }
        url = f"{self.api_base}{path}"
        try:
            resp = self.session.request(method, url, json=json, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise GatewayError(f"paypal {method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            payload = _safe_json(resp)
            logger.warning("[pg] %s %s -> %s %s", method, path, resp.status_code, payload)
            raise GatewayError(
                f"paypal {method} {path} rejected ({resp.status_code})",
                status_code=resp.status_code,
                payload=payload,
            )
        return _safe_json(resp) or {}

    # -------------------------------------------------
    # PaymentGateway
    # -------------------------------------------------
    def create_order(self, amount: str, description: str) -> GatewayOrder:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {"currency_code": self.currency, "value": amount},
                    "payee": {"email_address": self.payee_email},
                    "description": description,
                }
            ],
            "payment_source": {
                "paypal": {
                    "experience_context": {
                        "brand_name": self.brand_name,
                        "user_action": "PAY_NOW",
                        "return_url": self.return_url,
                        "cancel_url": self.cancel_url,
                    }
                }
            },
        }
        data = self._call("POST", "/v2/checkout/orders", json=body)

        order_id = data.get("id")
        approval_url = None
        for link in data.get("links") or []:
            if link.get("rel") in ("approve", "payer-action"):
                approval_url = link.get("href")
                break

        if not order_id or not approval_url:
            raise GatewayError("paypal order response without id/approve link", payload=data)

        logger.info("[pg] order created id=%s amount=%s %s", order_id, amount, self.currency)
        return GatewayOrder(
            gateway_order_id=order_id,
            approval_url=approval_url,
            pg_status=data.get("status"),
            pg_raw=data,
        )

    def get_order_status(self, gateway_order_id: str) -> str:
        data = self._call("GET", f"/v2/checkout/orders/{gateway_order_id}")
        return str(data.get("status") or "")

    def complete_order(self, gateway_order_id: str) -> str:
        data = self._call("POST", f"/v2/checkout/orders/{gateway_order_id}/capture", json={})
        status = str(data.get("status") or "")
        logger.info("[pg] order captured id=%s status=%s", gateway_order_id, status)
        return status


class DummyPaymentGateway:
    """
    실제 PG 없이 돌리는 더미 게이트웨이 (PAYPAL_MODE=dummy).

    - 주문 상태를 메모리에만 들고 있다
    - 개발 서버와 테스트에서 같은 구현을 쓴다
    """

    def __init__(self, approve_base_url: str = "https://pg.invalid/checkoutnow"):
        self.approve_base_url = approve_base_url
        self.orders: dict[str, str] = {}
        self.created: list[tuple[str, str]] = []  # (amount, description)

    def create_order(self, amount: str, description: str) -> GatewayOrder:
        order_id = f"DUMMY-{uuid.uuid4().hex[:16].upper()}"
        self.orders[order_id] = "CREATED"
        self.created.append((amount, description))
        logger.debug("[pg] dummy order created id=%s amount=%s", order_id, amount)
        return GatewayOrder(
            gateway_order_id=order_id,
            approval_url=f"{self.approve_base_url}?token={order_id}",
            pg_status="CREATED",
            pg_raw={"dummy": True, "amount": amount},
        )

    def get_order_status(self, gateway_order_id: str) -> str:
        try:
            return self.orders[gateway_order_id]
        except KeyError:
            raise GatewayError(f"unknown gateway order: {gateway_order_id}", status_code=404)

    def complete_order(self, gateway_order_id: str) -> str:
        if gateway_order_id not in self.orders:
            raise GatewayError(f"unknown gateway order: {gateway_order_id}", status_code=404)
        self.orders[gateway_order_id] = COMPLETED
        return COMPLETED


def build_gateway(settings: Settings) -> PaymentGateway:
    if settings.paypal_mode == "dummy":
        logger.warning("[pg] PAYPAL_MODE=dummy → 실제 결제가 일어나지 않습니다")
        return DummyPaymentGateway()
    return PayPalGateway.from_settings(settings)


def _safe_json(resp: requests.Response) -> Optional[dict[str, Any]]:
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
