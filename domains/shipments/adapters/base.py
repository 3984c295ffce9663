# domains/shipments/adapters/base.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timezone as dt_timezone
from typing import Any, Callable, Dict, Optional

import requests
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from ..config import ProviderConfig
from ..exceptions import CarrierRateLimited, ExternalProviderUnavailable, ProviderNotConfigured
from ..status_map import NormalizedUpdate, placeholder_update
from . import ratelimit

logger = logging.getLogger(__name__)


@dataclass
class AdapterResult:
    """어댑터 호출 결과. 실패도 예외 대신 success=False 로 돌려준다."""

    success: bool
    data: Any = None
    error: str = ""

    @classmethod
    def ok(cls, data: Any = None) -> "AdapterResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: Any) -> "AdapterResult":
        return cls(success=False, error=str(error))


def dig(obj: Any, *path, default: Any = None) -> Any:
    """중첩 dict/list 를 안전하게 따라감. 중간에 끊기면 default."""
    cur = obj
    for key in path:
        if isinstance(key, int):
            if not isinstance(cur, list) or not (-len(cur) <= key < len(cur)):
                return default
            cur = cur[key]
        elif isinstance(cur, dict):
            cur = cur.get(key)
        else:
            return default
        if cur is None:
            return default
    return cur


def compact(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v not in (None, "")}


def parse_datetime_safe(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value).strip()
        try:
            dt = parse_datetime(s)
            if dt is None:
                d = parse_date(s)
                dt = datetime.combine(d, time.min) if d else None
        except ValueError:
            return None
    if dt is None:
        return None
    # naive → aware (UTC)
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt, dt_timezone.utc)
    return dt


class CarrierAdapter:
    """
    택배사 어댑터 공통 구현.
    - fetch_tracking: GET {base_url}/{tracking_number}
    - register_shipment: POST {base_url}/create
    - normalize: 택배사 원본 응답 → NormalizedUpdate (택배사별 구현)
    모든 호출은 timeout 이 걸리고, 실패는 AdapterResult.fail 로 보고된다.
    429 를 받으면 해당 택배사를 쿨다운에 넣고 그동안은 호출하지 않는다 (ratelimit).
    """

    provider: str = ""

    def __init__(self, config: Optional[ProviderConfig] = None):
        self.config = config

    def _require_config(self) -> ProviderConfig:
        if self.config is None or not self.config.is_configured:
            raise ProviderNotConfigured(f"Provider {self.provider} not configured")
        return self.config

    @staticmethod
    def _headers(config: ProviderConfig) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    def _call(self, send: Callable[..., requests.Response], url: str, **kwargs) -> Any:
        config = self._require_config()
        remaining = ratelimit.cooldown_remaining(self.provider)
        if remaining:
            raise CarrierRateLimited(f"{self.provider} rate limited for another {remaining}s")
        try:
            res = send(url, headers=self._headers(config), timeout=config.timeout, **kwargs)
            if res.status_code == 429:
                seconds = ratelimit.retry_after_seconds(res, config.rate_limit_cooldown)
                ratelimit.trip(self.provider, seconds)
                raise CarrierRateLimited(f"{self.provider} returned 429; cooling down {seconds}s")
            res.raise_for_status()
            return res.json()
        except requests.Timeout as e:
            raise ExternalProviderUnavailable(
                f"{self.provider} timed out after {config.timeout}s"
            ) from e
        except requests.RequestException as e:
            raise ExternalProviderUnavailable(f"{self.provider} request failed: {e}") from e
        except ValueError as e:
            raise ExternalProviderUnavailable(f"{self.provider} returned invalid JSON") from e

    def fetch_tracking(self, tracking_number: str) -> AdapterResult:
        try:
            config = self._require_config()
            raw = self._call(requests.get, f"{config.base_url}/{tracking_number}")
        except ExternalProviderUnavailable as e:
            logger.warning("%s tracking lookup failed for %s: %s", self.provider, tracking_number, e)
            return AdapterResult.fail(e)
        return AdapterResult.ok(raw)

    def register_shipment(self, payload: Dict[str, Any]) -> AdapterResult:
        try:
            config = self._require_config()
            raw = self._call(requests.post, f"{config.base_url}/create", json=payload)
        except ExternalProviderUnavailable as e:
            logger.warning(
                "%s shipment registration failed for %s: %s",
                self.provider,
                payload.get("reference"),
                e,
            )
            return AdapterResult.fail(e)
        logger.info("External shipment created with %s: %s", self.provider, payload.get("reference"))
        return AdapterResult.ok(raw)

    def normalize(self, raw: Dict[str, Any]) -> NormalizedUpdate:
        raise NotImplementedError

    def track(self, tracking_number: str) -> AdapterResult:
        """조회 + 정규화. data 는 NormalizedUpdate."""
        result = self.fetch_tracking(tracking_number)
        if not result.success:
            return result
        raw = result.data
        if not isinstance(raw, dict):
            logger.warning("%s returned a non-object payload for %s", self.provider, tracking_number)
            return AdapterResult.ok(placeholder_update())
        return AdapterResult.ok(self.normalize(raw))
