# shared/permissions.py
from __future__ import annotations

from typing import Iterable

from rest_framework.permissions import BasePermission

# ---- helpers ---------------------------------------------------------------


def _is_schema_generation(view) -> bool:
    """drf-spectacular 스키마 생성 시 True (권한을 널널하게 통과시켜 문서 생성 편의)."""
    return bool(getattr(view, "swagger_fake_view", False))


def _is_staff(user) -> bool:
    return bool(getattr(user, "is_authenticated", False) and getattr(user, "is_staff", False))


def _party_ids(obj, fields: Iterable[str]) -> set:
    """obj 의 당사자 id 들 (문자열로 비교)."""
    return {str(getattr(obj, f)) for f in fields if getattr(obj, f, None)}


# ---- permissions -----------------------------------------------------------


class IsStaff(BasePermission):
    """user.is_staff"""

    def has_permission(self, request, view):
        if _is_schema_generation(view):
            return True
        return _is_staff(request.user)


class IsPartyOrStaff(BasePermission):
    """
    로그인 필수. 객체 단위로는 staff 이거나 obj 의 buyer/seller 가 현재 유저일 때만.
    당사자 필드는 view.party_fields 로 바꿀 수 있다.
    """

    party_fields = ("buyer", "seller")

    def has_permission(self, request, view):
        if _is_schema_generation(view):
            return True
        return bool(getattr(request.user, "is_authenticated", False))

    def has_object_permission(self, request, view, obj):
        user = request.user
        if _is_staff(user):
            return True
        fields = getattr(view, "party_fields", self.party_fields)
        return str(getattr(user, "pk", "")) in _party_ids(obj, fields)


__all__ = [
    "IsStaff",
    "IsPartyOrStaff",
]
