"""배송 추적 도메인 예외.

서비스 레이어가 던지고, API 레이어(views)가 HTTP 응답으로 변환한다.
외부 연동(택배사/알림) 실패는 서비스 안에서 흡수되며 호출자에게 올라가지 않는다.
"""

from __future__ import annotations


class ShipmentError(Exception):
    """배송 도메인 예외의 공통 부모."""


class ShipmentNotFound(ShipmentError):
    """해당 운송장 번호의 배송 레코드가 없음."""

    def __init__(self, tracking_number: str):
        self.tracking_number = tracking_number
        super().__init__(f"Tracking number not found: {tracking_number}")


class DuplicateTrackingNumber(ShipmentError):
    """운송장 번호 충돌 (생성 경계에서 한 번 재발급 후 재시도)."""

    def __init__(self, tracking_number: str):
        self.tracking_number = tracking_number
        super().__init__(f"Duplicate tracking number: {tracking_number}")


class ExternalProviderUnavailable(ShipmentError):
    """택배사 API 호출 실패/타임아웃. 마지막 저장 상태로 대체된다."""


class ProviderNotConfigured(ExternalProviderUnavailable):
    """택배사 자격증명/엔드포인트 미설정. 호출 불가와 동일하게 취급."""


class CarrierRateLimited(ExternalProviderUnavailable):
    """택배사가 429 로 거절해 쿨다운 중. 쿨다운이 끝날 때까지 호출하지 않는다."""


class NotificationFailure(ShipmentError):
    """구매자 알림 실패. 로그만 남긴다."""


class InvalidShipmentStatus(ShipmentError, ValueError):
    """표준 상태값으로 해석할 수 없는 입력."""


class InvalidStatusTransition(ShipmentError):
    """전이표에 없는 상태 전이 (예: Delivered → Processing)."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Illegal status transition: {current!r} -> {requested!r}")


class UnsupportedProvider(ShipmentError, ValueError):
    """등록되지 않은 택배사 코드로 배송을 만들려 함."""


class ImmutableFieldError(ShipmentError):
    """생성 이후 바뀌면 안 되는 값(운송장 번호, 택배사, 이력)을 수정하려 함."""


__all__ = [
    "ShipmentError",
    "ShipmentNotFound",
    "DuplicateTrackingNumber",
    "ExternalProviderUnavailable",
    "ProviderNotConfigured",
    "CarrierRateLimited",
    "NotificationFailure",
    "InvalidShipmentStatus",
    "InvalidStatusTransition",
    "UnsupportedProvider",
    "ImmutableFieldError",
]
