from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from .utils import slugify_platform

DOMESTIC_LIVE = "국내비독점 [라이브]"
OVERSEAS_LIVE = "해외비독점 [라이브]"
DOMESTIC_COMPLETED = "국내비독점 [완결]"
OVERSEAS_COMPLETED = "해외비독점 [완결]"

CATEGORIES = [DOMESTIC_LIVE, OVERSEAS_LIVE, DOMESTIC_COMPLETED, OVERSEAS_COMPLETED]
DEFAULT_CATEGORY = DOMESTIC_LIVE

LIVE_TAG = "라이브"
COMPLETED_TAG = "완결"


@dataclass(frozen=True)
class Platform:
    id: str
    name: str


DOMESTIC_PLATFORMS = sorted([
    Platform("anitoon", "애니툰"),
    Platform("alltoon", "올툰"),
    Platform("bomtoon", "봄툰"),
    Platform("blice", "블라이스"),
    Platform("bookcube", "북큐브"),
    Platform("bookpal", "북팔"),
    Platform("comico", "코미코"),
    Platform("kyobo-ebook", "교보E북"),
    Platform("guru-company", "구루컴퍼니"),
    Platform("ktoon", "케이툰"),
    Platform("manhwa365", "만화365"),
    Platform("mrblue", "미스터블루"),
    Platform("muto", "무툰"),
    Platform("muto2", "미툰"),
    Platform("naver-series", "네이버시리즈"),
    Platform("pickme", "픽미툰"),
    Platform("ridibooks", "리디북스"),
    Platform("lezhin", "레진"),
    Platform("toomics", "투믹스"),
    Platform("qtoon", "큐툰"),
    Platform("watcha", "왓챠"),
    Platform("onestory", "원스토리"),
    Platform("internet-manhwabang", "인터넷만화방"),
    Platform("duri", "두리요"),
], key=lambda p: p.name)

OVERSEAS_PLATFORMS = sorted([
    Platform("funple", "펀플"),
    Platform("dlsite", "DLSITE\n(누온)"),
    Platform("toptoon-japan", "탑툰\n재팬"),
    Platform("toonhub", "툰허브"),
    Platform("honeytoon", "허니툰"),
    Platform("manta", "만타"),
    Platform("toomics-north-america", "투믹스\n(EN)"),
    Platform("toomics-japan", "투믹스\n(JP)"),
    Platform("toomics-italy", "투믹스\n(IT)"),
    Platform("toomics-portugal", "투믹스\n(PT)"),
    Platform("toomics-france", "투믹스\n(FR)"),
    Platform("toomics-china-simplified", "투믹스\n(간체)"),
    Platform("toomics-china-traditional", "투믹스\n(번체)"),
    Platform("toomics-germany", "투믹스\n(DE)"),
    Platform("toomics-spain", "투믹스\n(ES)"),
    Platform("toomics-south-america", "투믹스\n(남미)"),
    Platform("lezhin-north-america", "레진\n(EN)"),
    Platform("lezhin-japan", "레진\n(JP)"),
], key=lambda p: p.name)


# -----------------------
# 카테고리 헬퍼
# -----------------------
def is_overseas(category: Optional[str]) -> bool:
    return bool(category) and "해외" in category


def is_completed_category(category: Optional[str]) -> bool:
    return bool(category) and f"[{COMPLETED_TAG}]" in category


def is_live_category(category: Optional[str]) -> bool:
    return bool(category) and f"[{LIVE_TAG}]" in category


def target_category(project_status: str, overseas: bool = False) -> str:
    region = "해외비독점" if overseas else "국내비독점"
    if project_status == "completed":
        return f"{region} [{COMPLETED_TAG}]"
    return f"{region} [{LIVE_TAG}]"


def swap_category(category: str) -> str:
    """완결 <-> 라이브 (국내/해외는 유지)."""
    if LIVE_TAG in category:
        return category.replace(LIVE_TAG, COMPLETED_TAG, 1)
    if COMPLETED_TAG in category:
        return category.replace(COMPLETED_TAG, LIVE_TAG, 1)
    return category


class CatalogError(ValueError):
    pass


class PlatformCatalog:
    """
    플랫폼 목록 (정적 설정 + 런타임 추가/수정/삭제).
    저장소에 영속화하지 않으며 프로세스 수명 동안만 유지된다.
    """

    def __init__(self):
        self._base = {
            "domestic": list(DOMESTIC_PLATFORMS),
            "overseas": list(OVERSEAS_PLATFORMS),
        }
        self._added: Dict[str, List[Platform]] = {"domestic": [], "overseas": []}
        self._renamed: Dict[str, str] = {}
        self._deleted: Set[str] = set()

    @staticmethod
    def region_of(category: Optional[str]) -> str:
        return "overseas" if is_overseas(category) else "domestic"

    def platforms_for(self, category: Optional[str]) -> List[Platform]:
        region = self.region_of(category)
        out = []
        for p in self._base[region] + self._added[region]:
            if p.id in self._deleted:
                continue
            out.append(Platform(p.id, self._renamed.get(p.id, p.name)))
        return sorted(out, key=lambda p: p.name)

    def find(self, platform_id: str) -> Optional[Platform]:
        for category in (DOMESTIC_LIVE, OVERSEAS_LIVE):
            for p in self.platforms_for(category):
                if p.id == platform_id:
                    return p
        return None

    def add(self, name: str, category: Optional[str]) -> Platform:
        name = (name or "").strip()
        if not name:
            raise CatalogError("platform name is required")
        new_id = slugify_platform(name)
        region = self.region_of(category)
        if any(p.id == new_id for p in self.platforms_for(category)):
            raise CatalogError("platform already exists")
        platform = Platform(new_id, name)
        self._added[region].append(platform)
        self._deleted.discard(new_id)
        return platform

    def rename(self, platform_id: str, name: str) -> Platform:
        name = (name or "").strip()
        if not name:
            raise CatalogError("platform name is required")
        if not self.find(platform_id):
            raise KeyError(platform_id)
        self._renamed[platform_id] = name
        return Platform(platform_id, name)

    def delete(self, platform_id: str) -> None:
        if not self.find(platform_id):
            raise KeyError(platform_id)
        self._deleted.add(platform_id)
