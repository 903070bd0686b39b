"""
런칭현황 셀 상태 조정기.

- 로컬 맵(statuses/notes)을 먼저 바꾸고, 저장소 반영은 Outbox 를 통해 시도한다.
  저장 실패는 로그만 남기고 로컬 상태는 그대로 둔다.
- 저장소 구독 스냅샷이 오면 로컬 맵을 통째로 교체한다.
- 작품 상태(완결 <-> 그 외)가 바뀌면 상태 레코드를 새 카테고리로 복사하고
  (기존 레코드는 지우지 않음) LaunchProject 행은 제자리에서 갱신한다.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .catalog import (
    DEFAULT_CATEGORY, DOMESTIC_COMPLETED, LIVE_TAG, OVERSEAS_COMPLETED,
    Platform, PlatformCatalog, is_live_category, is_overseas,
    swap_category, target_category,
)
from .keys import CanonicalKey, LegacyKey, StatusKey, parse_key
from .models import LaunchProject, LaunchStatus
from .outbox import FlushResult, Outbox
from .performance import PerformanceMonitor
from .store import DocumentStore, StoreError
from .utils import now_ms

logger = logging.getLogger("launch_tracker.reconciler")

NONE = "none"
LAUNCHED = "launched"
PENDING = "pending"
REJECTED = "rejected"

PRIMARY = "primary"      # 왼쪽 클릭
SECONDARY = "secondary"  # 오른쪽 클릭


def toggle_primary(current: str) -> str:
    return NONE if current == LAUNCHED else LAUNCHED


_SECONDARY_NEXT = {NONE: PENDING, PENDING: REJECTED, REJECTED: NONE}


def cycle_secondary(current: str) -> str:
    # launched 에서는 none 을 거치지 않고 바로 pending
    return _SECONDARY_NEXT.get(current, PENDING)


@dataclass
class CellState:
    key: str
    status: str = NONE
    note: str = ""
    # "canonical" | "legacy" | None (저장된 것 없음)
    source: Optional[str] = None


@dataclass
class MigrationReport:
    project_id: str
    target_categories: List[str] = field(default_factory=list)
    copied: List[str] = field(default_factory=list)
    skipped: int = 0
    failed: List[str] = field(default_factory=list)
    launch_projects_updated: int = 0
    launch_projects_created: int = 0


class StatusReconciler:
    def __init__(self, store: DocumentStore, catalog: Optional[PlatformCatalog] = None,
                 outbox: Optional[Outbox] = None, perf: Optional[PerformanceMonitor] = None):
        self.store = store
        self.catalog = catalog or PlatformCatalog()
        self.outbox = outbox or Outbox(store)
        self.perf = perf or PerformanceMonitor()

        self.statuses: Dict[str, str] = {}
        self.notes: Dict[str, str] = {}
        self.keys: Dict[str, StatusKey] = {}
        self.launch_projects: List[LaunchProject] = []

        self.loading_statuses = True
        self.loading_projects = True

        self._lock = threading.RLock()
        self._unsubscribers: List[Callable[[], None]] = []

    # -----------------------
    # 구독
    # -----------------------
    def attach(self) -> None:
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self.store.subscribe(LaunchStatus, self.apply_status_snapshot, self._on_status_error),
            self.store.subscribe(LaunchProject, self.apply_project_snapshot, self._on_project_error),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def apply_status_snapshot(self, rows: List[LaunchStatus]) -> None:
        statuses: Dict[str, str] = {}
        notes: Dict[str, str] = {}
        keys: Dict[str, StatusKey] = {}
        for row in rows:
            statuses[row.key] = row.status or NONE
            if isinstance(row.note, str):
                notes[row.key] = row.note
            keys[row.key] = parse_key(row.key)
        with self._lock:
            self.statuses = statuses
            self.notes = notes
            self.keys = keys
            self.loading_statuses = False

    def apply_project_snapshot(self, rows: List[LaunchProject]) -> None:
        projects = []
        for row in rows:
            projects.append(LaunchProject(
                id=row.id,
                title=row.title or "",
                category=row.category or DEFAULT_CATEGORY,
                status=row.status or "live",
                project_id=row.project_id or row.id,
            ))
        with self._lock:
            self.launch_projects = projects
            self.loading_projects = False

    def _on_status_error(self, error: Exception) -> None:
        logger.error("error fetching launch statuses: %s", error)
        with self._lock:
            self.loading_statuses = False

    def _on_project_error(self, error: Exception) -> None:
        logger.error("error fetching launch projects: %s", error)
        with self._lock:
            self.loading_projects = False

    # -----------------------
    # 키/조회
    # -----------------------
    def actual_project_id(self, project_id: str) -> str:
        """LaunchProject id 가 오면 메인 projectId 로 바꿔준다."""
        with self._lock:
            for lp in self.launch_projects:
                if lp.id == project_id:
                    return lp.project_id or project_id
        return project_id

    def cell_key(self, project_id: str, platform_id: str, category: str) -> CanonicalKey:
        return CanonicalKey.of(self.actual_project_id(project_id), category, platform_id)

    def _key_of(self, raw: str) -> StatusKey:
        key = self.keys.get(raw)
        if key is None:
            key = parse_key(raw)
            self.keys[raw] = key
        return key

    def resolve(self, project_id: str, platform_id: str, category: str) -> CellState:
        """신규 키 -> 레거시 키 -> none 순서로 셀 상태를 정한다."""
        key = self.cell_key(project_id, platform_id, category)
        canonical, legacy = key.raw, key.legacy().raw
        with self._lock:
            if canonical in self.statuses or canonical in self.notes:
                return CellState(canonical, self.statuses.get(canonical, NONE),
                                 self.notes.get(canonical, ""), "canonical")
            if legacy in self.statuses or legacy in self.notes:
                return CellState(canonical, self.statuses.get(legacy, NONE),
                                 self.notes.get(legacy, ""), "legacy")
        return CellState(canonical)

    # -----------------------
    # 셀 클릭
    # -----------------------
    def click(self, project_id: str, platform_id: str, category: str, button: str,
              editing: bool = False) -> CellState:
        current = self.resolve(project_id, platform_id, category)
        if editing:
            # 메모 편집 중인 셀은 토글하지 않음
            return current

        if button == PRIMARY:
            new_status = toggle_primary(current.status)
        elif button == SECONDARY:
            new_status = cycle_secondary(current.status)
        else:
            return current

        key = self.cell_key(project_id, platform_id, category)
        legacy = key.legacy()
        logger.debug("cell %s: %s -> %s", key.raw, current.status, new_status)

        with self._lock:
            self.statuses[key.raw] = new_status
            self.keys[key.raw] = key
            self.statuses.pop(legacy.raw, None)

        if new_status == NONE:
            self.outbox.enqueue_delete(key)
        else:
            self.outbox.enqueue_upsert(key, {"status": new_status}, purge_legacy=True)
        self._write_through(key.raw)

        note = current.note if current.source == "canonical" else ""
        return CellState(key.raw, new_status, note, "canonical")

    def save_note(self, project_id: str, platform_id: str, category: str, text: str) -> CellState:
        key = self.cell_key(project_id, platform_id, category)
        note = (text or "").strip()
        with self._lock:
            self.notes[key.raw] = note
            self.keys[key.raw] = key
            status = self.statuses.get(key.raw, NONE)

        self.outbox.enqueue_upsert(key, {"note": note}, create_fields={"status": status})
        self._write_through(key.raw)
        return CellState(key.raw, status, note, "canonical")

    def _write_through(self, raw_key: str) -> FlushResult:
        result = self.perf.measure_sync("write-through", lambda: self.outbox.flush([raw_key]))
        if result.failed:
            logger.warning("store write for %s failed; local state kept until reload", raw_key)
        return result

    # -----------------------
    # 전체 저장
    # -----------------------
    def save_all(self) -> FlushResult:
        """로컬 상태/메모 전체를 저장소에 upsert 한다."""
        with self._lock:
            statuses = dict(self.statuses)
            notes = dict(self.notes)

        all_keys = list(statuses)
        all_keys += [k for k in notes if k not in statuses]
        raws = []
        for raw in all_keys:
            status = statuses.get(raw, NONE)
            note = notes.get(raw)
            if status == NONE and not (note and note.strip()):
                continue
            self.outbox.enqueue_upsert(self._key_of(raw), {"status": status, "note": note or ""},
                                       raw_key=raw)
            raws.append(raw)

        logger.info("saving %d launch status records", len(raws))
        result = self.perf.measure_sync("save-all", lambda: self.outbox.flush(raws))
        if result.failed:
            logger.error("save all: %d of %d records failed", len(result.failed), len(raws))
        return result

    # -----------------------
    # 카테고리 이동
    # -----------------------
    def migrate_category(self, project_id: str, old_status: str, new_status: str) -> MigrationReport:
        """
        작품 상태가 완결 경계를 넘을 때 호출.
        상태 레코드는 새 카테고리 키로 복사(기존 유지), LaunchProject 는 제자리 갱신.
        """
        report = MigrationReport(project_id)
        if (old_status == "completed") == (new_status == "completed"):
            return report

        records = self.store.find(LaunchStatus, project_id=project_id)
        for record in records:
            target = target_category(new_status, is_overseas(record.category))
            if record.category == target:
                report.skipped += 1
                continue
            key = CanonicalKey.of(project_id, target, record.platform_id)
            self._copy_record(record, key, report)

        for lp in self.store.find(LaunchProject, project_id=project_id):
            target = target_category(new_status, is_overseas(lp.category))
            try:
                self.store.update(LaunchProject, lp.id, category=target, status=new_status)
                report.launch_projects_updated += 1
            except StoreError:
                logger.exception("launch project %s category update failed", lp.id)
                report.failed.append(lp.id)

        report.target_categories = sorted({target_category(new_status, False),
                                           target_category(new_status, True)})
        logger.info("launch statuses synced %s -> %s for %s: %d copied, %d failed",
                    old_status, new_status, project_id, len(report.copied), len(report.failed))
        return report

    def copy_to_completed(self, project_id: str, title: str = "") -> MigrationReport:
        """라이브 레코드를 완결 카테고리로 복사 ('완결로 이동')."""
        report = MigrationReport(project_id, target_categories=[DOMESTIC_COMPLETED, OVERSEAS_COMPLETED])

        for record in self.store.find(LaunchStatus, project_id=project_id):
            parsed = parse_key(record.key)
            if LIVE_TAG in record.key and isinstance(parsed, CanonicalKey):
                category = swap_category(parsed.category)
            elif isinstance(parsed, CanonicalKey):
                category = OVERSEAS_COMPLETED if is_overseas(parsed.category) else DOMESTIC_COMPLETED
            else:
                # 레거시 키는 국내 완결로
                category = DOMESTIC_COMPLETED
            key = CanonicalKey.of(project_id, category, record.platform_id)
            if key.raw == record.key:
                report.skipped += 1
                continue
            self._copy_record(record, key, report)

        launch_projects = self.store.find(LaunchProject, project_id=project_id)
        for lp in launch_projects:
            if not is_live_category(lp.category):
                continue
            try:
                self.store.update(LaunchProject, lp.id,
                                  category=swap_category(lp.category),
                                  status="completed")
                report.launch_projects_updated += 1
            except StoreError:
                logger.exception("launch project %s move to completed failed", lp.id)
                report.failed.append(lp.id)

        if not launch_projects:
            for category in (DOMESTIC_COMPLETED, OVERSEAS_COMPLETED):
                try:
                    self.store.add(LaunchProject(title=title, category=category,
                                                 status="completed", project_id=project_id))
                    report.launch_projects_created += 1
                except StoreError:
                    logger.exception("launch project %s (%s) create failed", project_id, category)
                    report.failed.append(category)

        logger.info("launch statuses copied to completed for %s: %d copied",
                    project_id, len(report.copied))
        return report

    def _copy_record(self, record: LaunchStatus, key: CanonicalKey, report: MigrationReport) -> None:
        # 같은 키 레코드가 이미 있으면 새로 만들지 않고 덮어쓴다 (키당 한 건 유지)
        try:
            existing = self.store.first(LaunchStatus, key=key.raw)
            if existing is not None:
                self.store.update(LaunchStatus, existing.id, status=record.status,
                                  note=record.note or "", timestamp=now_ms())
            else:
                self.store.add(LaunchStatus(
                    key=key.raw,
                    project_id=key.project_id,
                    platform_id=record.platform_id,
                    category=key.category,
                    status=record.status,
                    note=record.note or "",
                    timestamp=now_ms(),
                ))
            report.copied.append(key.raw)
        except StoreError:
            logger.exception("copy %s -> %s failed", record.key, key.raw)
            report.failed.append(record.key)

    # -----------------------
    # 작품/플랫폼 삭제
    # -----------------------
    def delete_launch_project(self, launch_project_id: str) -> bool:
        deleted = self.store.delete(LaunchProject, launch_project_id)
        with self._lock:
            for raw in list(self.statuses):
                key = self._key_of(raw)
                if isinstance(key, LegacyKey) and key.project_id == launch_project_id:
                    del self.statuses[raw]
        return deleted

    def delete_platform(self, platform_id: str) -> List[str]:
        """해당 플랫폼의 모든 상태 레코드(신규/레거시 키)를 지운다."""
        with self._lock:
            raws = list(self.statuses) + [raw for raw in self.notes if raw not in self.statuses]
            targets = [raw for raw in raws if self._key_of(raw).platform_id == platform_id]

        for raw in targets:
            # 아직 반영 안 된 쓰기가 삭제된 레코드를 되살리지 않도록
            self.outbox.discard(raw)
            for doc in self.store.find(LaunchStatus, key=raw):
                self.store.delete(LaunchStatus, doc.id)

        with self._lock:
            for raw in targets:
                self.statuses.pop(raw, None)
                self.notes.pop(raw, None)
        self.catalog.delete(platform_id)
        return targets

    # -----------------------
    # 보드 조회
    # -----------------------
    def distribution_count(self, lp: LaunchProject, platforms: List[Platform]) -> int:
        return sum(
            1 for p in platforms
            if self.resolve(lp.id, p.id, lp.category).status == LAUNCHED
        )

    def board(self, category: str, q: Optional[str] = None, sort: str = "title",
              order: str = "asc", platform_ids: Optional[List[str]] = None) -> dict:
        return self.perf.measure_sync(
            "board", lambda: self._board(category, q, sort, order, platform_ids),
        )

    def _board(self, category, q, sort, order, platform_ids) -> dict:
        all_platforms = self.catalog.platforms_for(category)
        platforms = all_platforms
        if platform_ids:
            platforms = [p for p in all_platforms if p.id in platform_ids]

        # 작품 상태(제작중/예정 등)와 무관하게 카테고리의 모든 행을 보여준다
        with self._lock:
            rows = [lp for lp in self.launch_projects if lp.category == category]

        if q and q.strip():
            needle = q.lower()
            rows = [lp for lp in rows if needle in lp.title.lower()]

        counts = {lp.id: self.distribution_count(lp, all_platforms) for lp in rows}
        reverse = order == "desc"
        if sort == "distribution":
            rows.sort(key=lambda lp: counts[lp.id], reverse=reverse)
        else:
            rows.sort(key=lambda lp: lp.title, reverse=reverse)

        out_rows = []
        for lp in rows:
            cells = {}
            for p in platforms:
                cell = self.resolve(lp.id, p.id, lp.category or category)
                cells[p.id] = {"status": cell.status, "note": cell.note}
            out_rows.append({
                "id": lp.id,
                "title": lp.title,
                "category": lp.category,
                "project_id": lp.project_id,
                "distribution": counts[lp.id],
                "cells": cells,
            })

        return {
            "category": category,
            "platforms": [{"id": p.id, "name": p.name} for p in platforms],
            "rows": out_rows,
            "loading": self.loading_statuses or self.loading_projects,
        }

    def project_statuses(self, project_id: str) -> Dict[str, str]:
        """메인 작품 하나의 런칭 상태 (key -> status)."""
        with self._lock:
            return {
                raw: status for raw, status in self.statuses.items()
                if self._key_of(raw).project_id == project_id
            }

