# marketplace/config/settings.py
# 환경변수 기반 런타임 설정 (한 번 읽어서 SETTINGS 로 공유)
from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


@dataclass
class Settings:
    """
    서비스 전역 설정.

    - 비즈니스 로직에서는 os.getenv 를 직접 부르지 않고 SETTINGS.* 만 참조한다.
    - 테스트에서는 Settings(...) 를 새로 만들어 주입하거나 필드를 덮어쓴다.
    """
    # DB
    database_url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///./marketplace.db"))
    db_pool_size: int = field(default_factory=lambda: _env_int("DB_POOL_SIZE", 50))

    # 경매/목록
    auction_window_hours: float = field(default_factory=lambda: _env_float("AUCTION_WINDOW_HOURS", 72))
    page_size: int = field(default_factory=lambda: _env_int("PAGE_SIZE", 10))

    # 결제 게이트웨이 (PayPal REST v2)
    paypal_mode: str = field(default_factory=lambda: os.getenv("PAYPAL_MODE", "dummy"))  # dummy | sandbox | prod
    paypal_client_id: str = field(default_factory=lambda: os.getenv("PAYPAL_CLIENT_ID", ""))
    paypal_secret: str = field(default_factory=lambda: os.getenv("PAYPAL_SECRET_ID", ""))
    paypal_email: str = field(default_factory=lambda: os.getenv("PAYPAL_EMAIL", ""))
    payment_currency: str = field(default_factory=lambda: os.getenv("PAYMENT_CURRENCY", "BRL"))
    brand_name: str = field(default_factory=lambda: os.getenv("BRAND_NAME", "Cancanvas"))
    gateway_timeout_seconds: float = field(default_factory=lambda: _env_float("GATEWAY_TIMEOUT_SECONDS", 15))

    # 결제 링크 선점(claim) 이 이 시간보다 오래되면 죽은 요청으로 보고 재선점
    order_claim_stale_seconds: int = field(default_factory=lambda: _env_int("ORDER_CLAIM_STALE_SECONDS", 60))

    # 콜백/리다이렉트
    server_url: str = field(default_factory=lambda: os.getenv("SERVER_URL", "http://localhost:8080"))
    order_redirect_uri: str = field(default_factory=lambda: os.getenv("ORDER_REDIRECT_URI", "app://order"))

    # 인증 (JWT 는 외부 ID 제공자가 발급)
    secret_key: str = field(default_factory=lambda: os.getenv("SECRET_KEY", "your_secret_key_here"))
    jwt_algorithm: str = field(default_factory=lambda: os.getenv("JWT_ALGORITHM", "HS256"))
    access_token_expire_minutes: int = field(default_factory=lambda: _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60))
    auth_dev_bypass: bool = field(default_factory=lambda: _env_bool("AUTH_DEV_BYPASS", False))

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @property
    def paypal_api_base(self) -> str:
        if self.paypal_mode == "prod":
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"


# 전역 싱글톤 인스턴스
SETTINGS = Settings()
