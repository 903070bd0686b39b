"""
문서 저장소 래퍼.

컬렉션(SQLModel 테이블) 단위로 생성/조회/수정/삭제/동등조건 조회를 제공하고,
쓰기가 커밋될 때마다 구독자에게 컬렉션 전체 스냅샷을 밀어준다.
"""
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, select

from .db import session_scope

logger = logging.getLogger("launch_tracker.store")

M = TypeVar("M", bound=SQLModel)
SnapshotCallback = Callable[[List[Any]], None]
ErrorCallback = Callable[[Exception], None]


class StoreError(RuntimeError):
    """저장소 읽기/쓰기 실패."""


class DocumentStore:
    def __init__(self, engine):
        self.engine = engine
        self._listeners: Dict[type, list] = defaultdict(list)
        self._lock = threading.Lock()

    # -----------------------
    # 읽기
    # -----------------------
    def get(self, model: Type[M], doc_id: str) -> Optional[M]:
        try:
            with session_scope(self.engine) as session:
                return session.get(model, doc_id)
        except SQLAlchemyError as e:
            raise StoreError(f"get {model.__tablename__}/{doc_id} failed") from e

    def find(self, model: Type[M], **equals: Any) -> List[M]:
        stmt = select(model)
        for field, value in equals.items():
            stmt = stmt.where(getattr(model, field) == value)
        try:
            with session_scope(self.engine) as session:
                return list(session.exec(stmt).all())
        except SQLAlchemyError as e:
            raise StoreError(f"query {model.__tablename__} {equals} failed") from e

    def first(self, model: Type[M], **equals: Any) -> Optional[M]:
        rows = self.find(model, **equals)
        return rows[0] if rows else None

    def snapshot(self, model: Type[M]) -> List[M]:
        return self.find(model)

    # -----------------------
    # 쓰기
    # -----------------------
    def add(self, obj: M) -> M:
        try:
            with session_scope(self.engine) as session:
                session.add(obj)
                session.commit()
                session.refresh(obj)
        except SQLAlchemyError as e:
            raise StoreError(f"add {type(obj).__tablename__} failed") from e
        self._notify(type(obj))
        return obj

    def update(self, model: Type[M], doc_id: str, **fields: Any) -> M:
        try:
            with session_scope(self.engine) as session:
                obj = session.get(model, doc_id)
                if obj is None:
                    raise StoreError(f"{model.__tablename__}/{doc_id} not found")
                for k, v in fields.items():
                    setattr(obj, k, v)
                session.add(obj)
                session.commit()
                session.refresh(obj)
        except SQLAlchemyError as e:
            raise StoreError(f"update {model.__tablename__}/{doc_id} failed") from e
        self._notify(model)
        return obj

    def delete(self, model: Type[M], doc_id: str) -> bool:
        try:
            with session_scope(self.engine) as session:
                obj = session.get(model, doc_id)
                if obj is None:
                    return False
                session.delete(obj)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"delete {model.__tablename__}/{doc_id} failed") from e
        self._notify(model)
        return True

    # -----------------------
    # 구독
    # -----------------------
    def subscribe(self, model: Type[M], on_snapshot: SnapshotCallback,
                  on_error: Optional[ErrorCallback] = None) -> Callable[[], None]:
        """등록 즉시 현재 스냅샷을 한 번 보내고, 해제 함수를 돌려준다."""
        entry = (on_snapshot, on_error)
        with self._lock:
            self._listeners[model].append(entry)

        self._deliver(model, [entry])

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners[model]:
                    self._listeners[model].remove(entry)

        return unsubscribe

    def listener_count(self, model: Type[M]) -> int:
        return len(self._listeners[model])

    def _notify(self, model: type) -> None:
        with self._lock:
            entries = list(self._listeners[model])
        if entries:
            self._deliver(model, entries)

    def _deliver(self, model: type, entries: list) -> None:
        try:
            rows = self.snapshot(model)
        except StoreError as e:
            logger.exception("snapshot of %s failed", model.__tablename__)
            for _, on_error in entries:
                if on_error:
                    on_error(e)
            return

        for on_snapshot, _ in entries:
            try:
                on_snapshot(rows)
            except Exception:
                logger.exception("snapshot listener for %s failed", model.__tablename__)
