import pytest

from launch_tracker.catalog import (
    CATEGORIES, DOMESTIC_PLATFORMS, OVERSEAS_PLATFORMS, CatalogError, PlatformCatalog,
    is_overseas, swap_category, target_category,
)


def test_platform_counts_and_sorting():
    assert len(DOMESTIC_PLATFORMS) == 24
    assert len(OVERSEAS_PLATFORMS) == 18
    names = [p.name for p in DOMESTIC_PLATFORMS]
    assert names == sorted(names)


def test_platforms_for_category_region():
    catalog = PlatformCatalog()
    assert {p.id for p in catalog.platforms_for("해외비독점 [완결]")} == {p.id for p in OVERSEAS_PLATFORMS}
    assert {p.id for p in catalog.platforms_for("국내비독점 [라이브]")} == {p.id for p in DOMESTIC_PLATFORMS}


def test_category_helpers():
    assert len(CATEGORIES) == 4
    assert is_overseas("해외비독점 [라이브]")
    assert not is_overseas(None)
    assert target_category("completed", overseas=True) == "해외비독점 [완결]"
    assert target_category("scheduled") == "국내비독점 [라이브]"
    assert swap_category("국내비독점 [라이브]") == "국내비독점 [완결]"
    assert swap_category("해외비독점 [완결]") == "해외비독점 [라이브]"


def test_add_platform_slugifies_and_rejects_duplicates():
    catalog = PlatformCatalog()
    p = catalog.add("  Kakao Page ", "국내비독점 [라이브]")
    assert p.id == "kakao-page"
    assert p in catalog.platforms_for("국내비독점 [완결]")
    assert p not in catalog.platforms_for("해외비독점 [라이브]")
    with pytest.raises(CatalogError):
        catalog.add("kakao page", "국내비독점 [라이브]")
    with pytest.raises(CatalogError):
        catalog.add("   ", "국내비독점 [라이브]")


def test_rename_and_delete_platform():
    catalog = PlatformCatalog()
    catalog.rename("lezhin", "레진코믹스")
    assert catalog.find("lezhin").name == "레진코믹스"
    catalog.delete("lezhin")
    assert catalog.find("lezhin") is None
    with pytest.raises(KeyError):
        catalog.delete("lezhin")
