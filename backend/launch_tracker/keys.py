"""
런칭 상태 셀 키.

신규 포맷: ``projectId::category::platformId`` (CanonicalKey)
레거시:    ``projectId-platformId``           (LegacyKey, 카테고리 없음)

저장소에서 읽어 들일 때 한 번만 파싱해서 구조화된 키로 들고 다닌다.
"""
from dataclasses import dataclass
from typing import Optional, Union

CANONICAL_SEP = "::"
LEGACY_SEP = "-"


def build_status_key(actual_project_id: str, category: str, platform_id: str) -> str:
    # 카테고리 내부 공백은 그대로 두고 앞뒤만 트림
    normalized_category = (category or "").strip()
    return f"{actual_project_id}{CANONICAL_SEP}{normalized_category}{CANONICAL_SEP}{platform_id}"


def build_legacy_key(actual_project_id: str, platform_id: str) -> str:
    return f"{actual_project_id}{LEGACY_SEP}{platform_id}"


@dataclass(frozen=True)
class CanonicalKey:
    project_id: str
    category: str
    platform_id: str

    @classmethod
    def of(cls, actual_project_id: str, category: str, platform_id: str) -> "CanonicalKey":
        return cls(actual_project_id, (category or "").strip(), platform_id)

    @property
    def raw(self) -> str:
        return build_status_key(self.project_id, self.category, self.platform_id)

    def legacy(self) -> "LegacyKey":
        return LegacyKey(self.project_id, self.platform_id)


@dataclass(frozen=True)
class LegacyKey:
    project_id: str
    platform_id: str
    category: Optional[str] = None

    @property
    def raw(self) -> str:
        return build_legacy_key(self.project_id, self.platform_id)


StatusKey = Union[CanonicalKey, LegacyKey]


def parse_key(raw: str) -> StatusKey:
    """
    저장된 키 문자열 -> 구조화된 키.

    ``::`` 로 나눠 정확히 3조각이면 신규 포맷. 아니면 첫 ``-`` 앞을 projectId,
    나머지를 다시 ``-`` 로 이어 platformId 로 본다 (플랫폼 id 에 하이픈이 있을 수 있음).
    projectId 자체에 하이픈이 있으면 레거시 키는 잘못 갈린다.
    """
    parts = raw.split(CANONICAL_SEP)
    if len(parts) == 3:
        return CanonicalKey(parts[0], parts[1], parts[2])
    legacy = raw.split(LEGACY_SEP)
    return LegacyKey(legacy[0], LEGACY_SEP.join(legacy[1:]))


def record_fields(key: StatusKey, raw: Optional[str] = None) -> dict:
    """새 문서 생성 시 key 로부터 복원하는 필드들. raw 가 있으면 key 필드는 원문 그대로."""
    return {
        "key": raw if raw is not None else key.raw,
        "project_id": key.project_id,
        "platform_id": key.platform_id,
        "category": key.category,
    }
