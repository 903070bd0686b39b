from typing import Optional

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from .utils import new_doc_id, now_ms


# =========================
# Project (메인 작품)
# =========================
class Project(SQLModel, table=True):
    __tablename__ = "projects"

    id: str = Field(default_factory=new_doc_id, primary_key=True)
    title: str
    # production | scheduled | live | completed
    status: str = Field(default="production", index=True)
    category_tags: list = Field(default_factory=list, sa_column=Column(JSON))

    last_modified: int = Field(default_factory=now_ms)


# =========================
# LaunchProject (런칭현황 전용 작품 행)
# =========================
class LaunchProject(SQLModel, table=True):
    __tablename__ = "launchProjects"

    id: str = Field(default_factory=new_doc_id, primary_key=True)
    title: str = ""
    category: str = "국내비독점 [라이브]"
    status: str = "live"  # live | completed
    # 메인 projects 의 id (없으면 자기 id 로 취급)
    project_id: Optional[str] = Field(default=None, index=True)


# =========================
# LaunchStatus (플랫폼별 런칭 상태 셀)
# =========================
class LaunchStatus(SQLModel, table=True):
    __tablename__ = "launchStatuses"

    id: str = Field(default_factory=new_doc_id, primary_key=True)

    # 조회는 key 동등 비교로 (문서 id 로 직접 접근하지 않음)
    key: str = Field(index=True)
    project_id: str = Field(index=True)
    platform_id: str
    category: Optional[str] = None  # 레거시 키는 없음

    status: str = "none"  # none | launched | pending | rejected
    note: Optional[str] = None
    timestamp: int = Field(default_factory=now_ms)
