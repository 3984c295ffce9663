# tests/conftest.py
from uuid import uuid4

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache

import pytest
from rest_framework.test import APIClient

from config import celery_app
from domains.shipments.config import TrackingConfig
from domains.shipments.repository import ShipmentStore
from domains.shipments.services import TrackingService
from tests.factories import PROVIDERS, WEBHOOK_SECRET

User = get_user_model()


# ─────────────────────────────────────────────────────────────
# 전역 테스트 환경 (해싱/메일/셀러리/택배사 설정)
# ─────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True, scope="session")
def _fast_password_hasher(django_db_setup, django_db_blocker):
    """
    해시 느린 기본 해셔 대신 MD5 해셔 사용, 이메일은 메모리 백엔드 사용
    """
    with django_db_blocker.unblock():
        settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
        settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"


@pytest.fixture(autouse=True)
def _eager_celery():
    """브로커 없이 태스크를 즉시 실행."""
    # 앱이 namespace="CELERY"로 설정되어 있으므로 접두사 키로 지정해야 적용됨
    conf = celery_app.conf
    prev = (conf.task_always_eager, conf.task_eager_propagates)
    conf.CELERY_TASK_ALWAYS_EAGER = True
    conf.CELERY_TASK_EAGER_PROPAGATES = True
    yield
    conf.CELERY_TASK_ALWAYS_EAGER, conf.CELERY_TASK_EAGER_PROPAGATES = prev


@pytest.fixture(autouse=True)
def _clear_cache():
    """택배사 쿨다운은 캐시에 남으므로 테스트마다 비움."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _shipment_settings(settings):
    settings.SHIPMENT_PROVIDERS = PROVIDERS
    settings.SHIPMENT_PROVIDER_TIMEOUT = 10
    settings.SHIPMENT_TRACKING_PREFIX = "BLOC"
    settings.SHIPMENT_RATE_LIMIT_COOLDOWN = 3600
    settings.SHIPMENTS_NOTIFY_WEBHOOK = None
    settings.SHIPMENTS_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.DEFAULT_FROM_EMAIL = "tracking@example.com"


# ─────────────────────────────────────────────────────────────
# 사용자 & 클라이언트
# ─────────────────────────────────────────────────────────────
@pytest.fixture
def user_factory(db):
    def _make(**kw):
        email = kw.pop("email", f"user{uuid4().hex[:6]}@example.com")
        password = kw.pop("password", "Test1234!A")
        kw.setdefault("username", f"{email.split('@')[0]}_{uuid4().hex[:6]}")
        u = User.objects.create_user(email=email, password=password, **kw)
        # ✅ 로그인 테스트용 원문 비밀번호 보관
        u.raw_password = password
        return u

    return _make


@pytest.fixture
def buyer(user_factory):
    return user_factory(email="buyer@example.com")


@pytest.fixture
def seller(user_factory):
    return user_factory(email="seller@example.com")


@pytest.fixture
def staff(user_factory):
    return user_factory(email="staff@example.com", is_staff=True)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for():
    """사용법: client_for(user) → force_authenticate 된 APIClient"""

    def _make(user):
        c = APIClient()
        c.force_authenticate(user=user)
        return c

    return _make


# ─────────────────────────────────────────────────────────────
# 서비스
# ─────────────────────────────────────────────────────────────
@pytest.fixture
def tracking_config():
    return TrackingConfig.from_mapping(PROVIDERS, timeout=10, tracking_prefix="BLOC")


@pytest.fixture
def service(db, tracking_config):
    return TrackingService(config=tracking_config, store=ShipmentStore())


@pytest.fixture
def order_data(buyer, seller):
    def _make(**overrides):
        data = {
            "order_id": f"order-{uuid4().hex[:8]}",
            "nft_id": "nft-42",
            "seller": str(seller.pk),
            "buyer": str(buyer.pk),
            "provider": "local",
            "service": "standard",
            "origin": {"city": "Seoul", "country": "KR"},
            "destination": {"city": "Busan", "country": "KR"},
            "weight": "1.250",
            "dimensions": {"length": 30, "width": 20, "height": 10},
            "value": "120.00",
        }
        data.update(overrides)
        return data

    return _make
