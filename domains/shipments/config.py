from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from django.conf import settings

DEFAULT_TIMEOUT = 10.0
DEFAULT_PREFIX = "BLOC"
DEFAULT_RATE_LIMIT_COOLDOWN = 3600


@dataclass(frozen=True)
class ProviderConfig:
    base_url: str
    api_key: str = ""
    timeout: float = DEFAULT_TIMEOUT
    # 429 응답 후 Retry-After 가 없을 때 쉬는 시간(초)
    rate_limit_cooldown: int = DEFAULT_RATE_LIMIT_COOLDOWN

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)


@dataclass(frozen=True)
class TrackingConfig:
    """
    택배사별 접속 정보 묶음. 서비스 생성 시 주입한다.
    (환경변수는 settings 에서 한 번만 읽고, 여기서는 읽지 않음)
    """

    providers: Dict[str, ProviderConfig] = field(default_factory=dict)
    tracking_prefix: str = DEFAULT_PREFIX

    def provider(self, code: str) -> Optional[ProviderConfig]:
        return self.providers.get((code or "").strip().lower())

    @classmethod
    def from_mapping(
        cls,
        providers: Mapping[str, Mapping[str, Any]],
        *,
        timeout: float = DEFAULT_TIMEOUT,
        tracking_prefix: str = DEFAULT_PREFIX,
        rate_limit_cooldown: int = DEFAULT_RATE_LIMIT_COOLDOWN,
    ) -> "TrackingConfig":
        built = {
            code.lower(): ProviderConfig(
                base_url=str(conf.get("base_url") or "").rstrip("/"),
                api_key=str(conf.get("api_key") or ""),
                timeout=float(conf.get("timeout") or timeout),
                rate_limit_cooldown=int(conf.get("rate_limit_cooldown") or rate_limit_cooldown),
            )
            for code, conf in (providers or {}).items()
        }
        return cls(providers=built, tracking_prefix=tracking_prefix or DEFAULT_PREFIX)

    @classmethod
    def from_settings(cls) -> "TrackingConfig":
        return cls.from_mapping(
            getattr(settings, "SHIPMENT_PROVIDERS", {}),
            timeout=float(getattr(settings, "SHIPMENT_PROVIDER_TIMEOUT", DEFAULT_TIMEOUT)),
            tracking_prefix=getattr(settings, "SHIPMENT_TRACKING_PREFIX", DEFAULT_PREFIX),
            rate_limit_cooldown=int(
                getattr(settings, "SHIPMENT_RATE_LIMIT_COOLDOWN", DEFAULT_RATE_LIMIT_COOLDOWN)
            ),
        )
