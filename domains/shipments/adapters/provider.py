from __future__ import annotations

from typing import Dict, Optional, Type

from ..config import ProviderConfig
from ..exceptions import ProviderNotConfigured
from .base import CarrierAdapter

# 어댑터 레지스트리
_REGISTRY: Dict[str, Type[CarrierAdapter]] = {}


def _norm(code: str) -> str:
    return (code or "").strip().lower().replace("-", "_").replace(" ", "")


# 흔한 별칭 → 표준 코드
_ALIASES = {
    "dhl_express": "dhl",
    "fedex_express": "fedex",
    "fdx": "fedex",
    "united_parcel_service": "ups",
    "courier": "local",
    "internal": "local",
}


def register_adapter(code: str, adapter_cls: Type[CarrierAdapter]) -> None:
    """택배사 코드(별칭 포함)에 어댑터 클래스를 등록."""
    _REGISTRY[_norm(code)] = adapter_cls


def resolve_code(code: str) -> str:
    key = _norm(code)
    return _ALIASES.get(key, key)


def get_adapter(code: str, config: Optional[ProviderConfig] = None) -> CarrierAdapter:
    """택배사 코드/별칭으로 어댑터 인스턴스를 반환."""
    key = resolve_code(code)
    cls = _REGISTRY.get(key)
    if not cls:
        raise ProviderNotConfigured(f"No adapter registered for provider '{code}' (key='{key}')")
    return cls(config)
