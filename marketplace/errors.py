# marketplace/errors.py
# 경매/결제 도메인 에러 타입
# - 스토어(crud)는 이 예외만 던지고, HTTP 변환은 main.py 의 핸들러 한 곳에서 한다.


class MarketError(Exception):
    code = "error"
    http_status = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidIdError(MarketError):
    code = "invalid_id"
    http_status = 400

    def __init__(self, field: str, value: object):
        super().__init__(f"Invalid {field}")
        self.field = field
        self.value = value


class NotFoundError(MarketError):
    code = "not_found"
    http_status = 404


class UnauthorizedError(MarketError):
    # 호출자는 식별됐지만 호스트/입찰자 관계가 아님
    code = "unauthorized"
    http_status = 403


class ForbiddenError(MarketError):
    code = "forbidden"
    http_status = 403


class ExpiredError(MarketError):
    code = "expired"
    http_status = 410


class ConflictError(MarketError):
    code = "conflict"
    http_status = 409


class GatewayError(MarketError):
    code = "gateway_error"
    http_status = 502

    def __init__(self, message: str, *, status_code: int | None = None, payload: object = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class StorageError(MarketError):
    code = "storage_error"
    http_status = 500
