"""
런칭 상태 쓰기 대기열.

로컬 상태는 즉시 바뀌고, 저장소 반영은 여기 쌓인 항목을 flush 할 때 일어난다.
같은 키에 대한 항목은 하나로 합쳐지며(마지막 의도 우선), 실패한 항목은
시도 횟수/에러와 함께 남아 있다가 다음 flush 때 다시 적용된다.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .keys import CanonicalKey, StatusKey, record_fields
from .models import LaunchStatus
from .store import DocumentStore, StoreError
from .utils import now_ms

logger = logging.getLogger("launch_tracker.outbox")

UPSERT = "upsert"
DELETE = "delete"


@dataclass
class OutboxEntry:
    raw_key: str
    key: StatusKey
    action: str
    # 기존 문서가 있을 때 덮어쓸 필드
    fields: Dict[str, object] = field(default_factory=dict)
    # 새로 만들 때만 쓰는 필드
    create_fields: Dict[str, object] = field(default_factory=dict)
    purge_legacy: bool = False
    # 아직 반영 못 한 삭제가 앞에 있었으면 upsert 전에 먼저 지운다
    delete_first: bool = False
    attempts: int = 0
    last_error: Optional[str] = None
    enqueued_at: int = field(default_factory=now_ms)


@dataclass
class FlushResult:
    applied: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class Outbox:
    def __init__(self, store: DocumentStore):
        self.store = store
        self._entries: Dict[str, OutboxEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def pending(self) -> List[OutboxEntry]:
        with self._lock:
            return list(self._entries.values())

    def enqueue_upsert(self, key: StatusKey, fields: Dict[str, object],
                       create_fields: Optional[Dict[str, object]] = None,
                       purge_legacy: bool = False, raw_key: Optional[str] = None) -> OutboxEntry:
        raw = raw_key if raw_key is not None else key.raw
        with self._lock:
            prev = self._entries.pop(raw, None)
            entry = OutboxEntry(raw_key=raw, key=key, action=UPSERT,
                                fields=dict(fields), create_fields=dict(create_fields or {}),
                                purge_legacy=purge_legacy)
            if prev is not None and prev.action == UPSERT:
                entry.fields = {**prev.fields, **entry.fields}
                entry.create_fields = {**prev.create_fields, **entry.create_fields}
                entry.purge_legacy = prev.purge_legacy or purge_legacy
                entry.delete_first = prev.delete_first
                entry.attempts = prev.attempts
            elif prev is not None and prev.action == DELETE:
                entry.purge_legacy = True
                entry.delete_first = True
                entry.attempts = prev.attempts
            self._entries[raw] = entry
        return entry

    def enqueue_delete(self, key: StatusKey, raw_key: Optional[str] = None) -> OutboxEntry:
        raw = raw_key if raw_key is not None else key.raw
        with self._lock:
            prev = self._entries.pop(raw, None)
            entry = OutboxEntry(raw_key=raw, key=key, action=DELETE, purge_legacy=True)
            if prev is not None:
                entry.attempts = prev.attempts
            self._entries[raw] = entry
        return entry

    def discard(self, raw_key: str) -> bool:
        with self._lock:
            return self._entries.pop(raw_key, None) is not None

    def flush(self, keys: Optional[Iterable[str]] = None) -> FlushResult:
        """keys 가 주어지면 그 항목만, 아니면 전체를 순서대로 적용."""
        with self._lock:
            if keys is None:
                targets = list(self._entries.values())
            else:
                targets = [self._entries[k] for k in keys if k in self._entries]

        result = FlushResult()
        for entry in targets:
            entry.attempts += 1
            try:
                self._apply(entry)
            except StoreError as e:
                entry.last_error = str(e)
                result.failed.append(entry.raw_key)
                logger.exception("outbox %s %s failed (attempt %d)",
                                 entry.action, entry.raw_key, entry.attempts)
                continue

            with self._lock:
                # flush 도중 같은 키로 새 항목이 들어왔으면 그대로 둔다
                if self._entries.get(entry.raw_key) is entry:
                    del self._entries[entry.raw_key]
            result.applied.append(entry.raw_key)
        return result

    # -----------------------
    # 적용 (멱등)
    # -----------------------
    def _apply(self, entry: OutboxEntry) -> None:
        if entry.action == DELETE:
            removed = self._delete_all(entry.raw_key)
            logger.info("launch status deleted: %s (%d docs)", entry.raw_key, removed)
        else:
            if entry.delete_first:
                removed = self._delete_all(entry.raw_key)
                logger.info("launch status reset before upsert: %s (%d docs)", entry.raw_key, removed)
            self._upsert(entry)

        if entry.purge_legacy and isinstance(entry.key, CanonicalKey):
            legacy_raw = entry.key.legacy().raw
            if self._delete_all(legacy_raw):
                logger.info("legacy key removed: %s", legacy_raw)

    def _upsert(self, entry: OutboxEntry) -> None:
        existing = self.store.first(LaunchStatus, key=entry.raw_key)
        if existing is not None:
            self.store.update(LaunchStatus, existing.id, timestamp=now_ms(), **entry.fields)
            logger.info("launch status updated: %s (doc %s)", entry.raw_key, existing.id)
            return

        data = record_fields(entry.key, raw=entry.raw_key)
        data.update(entry.create_fields)
        data.update(entry.fields)
        data["timestamp"] = now_ms()
        doc = self.store.add(LaunchStatus(**data))
        logger.info("launch status created: %s (doc %s)", entry.raw_key, doc.id)

    def _delete_all(self, raw_key: str) -> int:
        removed = 0
        for doc in self.store.find(LaunchStatus, key=raw_key):
            if self.store.delete(LaunchStatus, doc.id):
                removed += 1
        return removed
