from __future__ import annotations

import dataclasses
import re
import time
import uuid
from typing import Any


def now_ms() -> int:
    """epoch milliseconds (문서 timestamp 필드용)."""
    return int(time.time() * 1000)


def new_doc_id() -> str:
    return uuid.uuid4().hex[:20]


def normalize_search(v: str | None) -> str:
    """
    띄어쓰기 무시 검색용:
      - 소문자
      - 모든 공백 제거
    """
    if not v:
        return ""
    return re.sub(r"\s+", "", v).lower()


def slugify_platform(name: str) -> str:
    # '탑툰 재팬' -> '탑툰-재팬'
    return re.sub(r"\s+", "-", name.strip().lower())


def sanitize_for_json(obj: Any) -> Any:
    """
    응답용 JSON 변환:
      - dataclass/SQLModel => dict
      - dict/list/tuple => 재귀 변환
      - 그 외 => 그대로
    """
    if obj is None:
        return None
    if hasattr(obj, "model_dump"):
        return sanitize_for_json(obj.model_dump())
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: sanitize_for_json(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, dict):
        return {k: sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_for_json(x) for x in obj]
    return obj
