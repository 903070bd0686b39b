from typing import List, Literal, Optional
from pydantic import BaseModel

from .catalog import DEFAULT_CATEGORY

ProjectStatus = Literal["production", "scheduled", "live", "completed"]


class ProjectCreate(BaseModel):
    title: str
    status: ProjectStatus = "production"
    category_tags: List[str] = []


class ProjectPatch(BaseModel):
    title: Optional[str] = None
    status: Optional[ProjectStatus] = None
    category_tags: Optional[List[str]] = None


class LaunchProjectCreate(BaseModel):
    title: str
    category: str = DEFAULT_CATEGORY
    project_id: Optional[str] = None


class LaunchProjectRename(BaseModel):
    title: str


class CellClick(BaseModel):
    project_id: str  # LaunchProject id 또는 메인 projectId
    platform_id: str
    category: str
    button: Literal["primary", "secondary"]
    editing: bool = False


class NoteSave(BaseModel):
    project_id: str
    platform_id: str
    category: str
    text: str = ""


class PlatformCreate(BaseModel):
    name: str
    category: str = DEFAULT_CATEGORY


class PlatformRename(BaseModel):
    name: str
