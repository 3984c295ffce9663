# domains/shipments/adapters/ratelimit.py
"""
택배사 429 쿨다운.
워커/프로세스가 같은 값을 보도록 Django 캐시에 "해제 시각(epoch 초)"을 저장한다.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, List, Optional

from django.core.cache import cache

logger = logging.getLogger(__name__)

KEY_PREFIX = "shipments:carrier-cooldown:"


def _key(provider: str) -> str:
    return f"{KEY_PREFIX}{str(provider).lower()}"


def cooldown_until(provider: str) -> Optional[float]:
    """쿨다운 중이면 해제 시각, 아니면 None."""
    until = cache.get(_key(provider))
    if until is None or until <= time.time():
        return None
    return until


def cooldown_remaining(provider: str) -> int:
    """남은 쿨다운(초, 올림). 쿨다운 중이 아니면 0."""
    until = cooldown_until(provider)
    if until is None:
        return 0
    return max(int(until - time.time() + 0.999), 1)


def is_rate_limited(provider: str) -> bool:
    return cooldown_until(provider) is not None


def trip(provider: str, seconds: int) -> float:
    seconds = max(int(seconds), 1)
    until = time.time() + seconds
    cache.set(_key(provider), until, timeout=seconds)
    logger.warning("%s rate limited; pausing calls for %ss", provider, seconds)
    return until


def clear(provider: str) -> None:
    cache.delete(_key(provider))


def limited_providers(providers: Iterable[str]) -> List[str]:
    return [p for p in providers if is_rate_limited(p)]


def retry_after_seconds(response: Any, default: int) -> int:
    """Retry-After(초) 헤더. 없거나 날짜 형식이면 default."""
    headers = getattr(response, "headers", None) or {}
    try:
        value = int(str(headers.get("Retry-After")).strip())
    except (TypeError, ValueError):
        return int(default)
    return value if value > 0 else int(default)
