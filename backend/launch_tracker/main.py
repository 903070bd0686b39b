import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session, select

from .catalog import (
    CATEGORIES, CatalogError, PlatformCatalog, is_completed_category,
)
from .config import Settings, get_settings
from .db import init_db, make_engine
from .models import LaunchProject, Project
from .outbox import Outbox
from .performance import PerformanceMonitor
from .reconciler import StatusReconciler
from .schemas import (
    CellClick, LaunchProjectCreate, LaunchProjectRename, NoteSave,
    PlatformCreate, PlatformRename, ProjectCreate, ProjectPatch,
)
from .store import DocumentStore, StoreError
from .utils import normalize_search, now_ms, sanitize_for_json

logger = logging.getLogger("launch_tracker.api")

router = APIRouter()


# -----------------------
# Dependencies
# -----------------------
def get_session(request: Request):
    with Session(request.app.state.store.engine) as session:
        yield session


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_reconciler(request: Request) -> StatusReconciler:
    return request.app.state.reconciler


def get_catalog(request: Request) -> PlatformCatalog:
    return request.app.state.catalog


def require_category(category: str) -> str:
    category = (category or "").strip()
    if category not in CATEGORIES:
        raise HTTPException(400, f"unknown category: {category}")
    return category


def store_unavailable(e: StoreError) -> HTTPException:
    logger.error("store error: %s", e)
    return HTTPException(503, "document store unavailable")


@router.get("/health")
def health(request: Request):
    return {"ok": True, "pending_writes": len(request.app.state.outbox)}


# -----------------------
# Catalog
# -----------------------
@router.get("/categories")
def list_categories():
    return CATEGORIES


@router.get("/platforms")
def list_platforms(category: str = CATEGORIES[0], catalog: PlatformCatalog = Depends(get_catalog)):
    require_category(category)
    return [{"id": p.id, "name": p.name} for p in catalog.platforms_for(category)]


@router.post("/platforms")
def create_platform(body: PlatformCreate, catalog: PlatformCatalog = Depends(get_catalog)):
    require_category(body.category)
    if not body.name.strip():
        raise HTTPException(400, "name is required")
    try:
        p = catalog.add(body.name, body.category)
    except CatalogError as e:
        raise HTTPException(409, str(e))
    return {"id": p.id, "name": p.name}


@router.patch("/platforms/{platform_id}")
def rename_platform(platform_id: str, body: PlatformRename,
                    catalog: PlatformCatalog = Depends(get_catalog)):
    if not body.name.strip():
        raise HTTPException(400, "name is required")
    try:
        p = catalog.rename(platform_id, body.name)
    except KeyError:
        raise HTTPException(404, "Platform not found")
    return {"id": p.id, "name": p.name}


@router.delete("/platforms/{platform_id}")
def delete_platform(platform_id: str, reconciler: StatusReconciler = Depends(get_reconciler)):
    if not reconciler.catalog.find(platform_id):
        raise HTTPException(404, "Platform not found")
    try:
        removed = reconciler.delete_platform(platform_id)
    except StoreError as e:
        raise store_unavailable(e)
    return {"ok": True, "removed_keys": removed}


# -----------------------
# Projects
# -----------------------
@router.post("/projects", response_model=Project)
def create_project(body: ProjectCreate, session: Session = Depends(get_session)):
    title = body.title.strip()
    if not title:
        raise HTTPException(400, "title is required")
    p = Project(title=title, status=body.status, category_tags=list(body.category_tags),
                last_modified=now_ms())
    session.add(p)
    session.commit()
    session.refresh(p)
    return p


@router.get("/projects", response_model=List[Project])
def list_projects(status: Optional[str] = None, q: Optional[str] = None,
                  session: Session = Depends(get_session)):
    stmt = select(Project)
    if status:
        stmt = stmt.where(Project.status == status)
    rows = session.exec(stmt.order_by(Project.last_modified.desc())).all()
    if q:
        # 띄어쓰기 무시
        needle = normalize_search(q)
        rows = [p for p in rows if needle in normalize_search(p.title)]
    return rows


@router.get("/projects/{pid}", response_model=Project)
def get_project(pid: str, session: Session = Depends(get_session)):
    p = session.get(Project, pid)
    if not p:
        raise HTTPException(404, "Project not found")
    return p


@router.patch("/projects/{pid}", response_model=Project)
def patch_project(pid: str, body: ProjectPatch, session: Session = Depends(get_session),
                  reconciler: StatusReconciler = Depends(get_reconciler)):
    p = session.get(Project, pid)
    if not p:
        raise HTTPException(404, "Project not found")

    if body.title is not None:
        title = body.title.strip()
        if not title:
            raise HTTPException(400, "title cannot be empty")
        p.title = title
    if body.category_tags is not None:
        p.category_tags = list(body.category_tags)

    if body.status is not None and body.status != p.status:
        # 상태가 바뀌면 런칭현황 카테고리도 동기화 (실패해도 작품 수정은 진행)
        try:
            reconciler.migrate_category(pid, p.status, body.status)
        except StoreError:
            logger.exception("launch status sync failed for %s", pid)
        p.status = body.status

    p.last_modified = now_ms()
    session.add(p)
    session.commit()
    session.refresh(p)
    return p


@router.post("/projects/{pid}/complete")
def complete_project(pid: str, session: Session = Depends(get_session),
                     reconciler: StatusReconciler = Depends(get_reconciler)):
    """완결로 이동: 상태 변경 + 런칭현황을 완결 카테고리로 복사."""
    p = session.get(Project, pid)
    if not p:
        raise HTTPException(404, "Project not found")

    p.status = "completed"
    p.last_modified = now_ms()
    session.add(p)
    session.commit()
    session.refresh(p)

    try:
        report = reconciler.copy_to_completed(pid, title=p.title)
    except StoreError as e:
        raise store_unavailable(e)
    return {"project": p.model_dump(), "report": sanitize_for_json(report)}


@router.get("/projects/{pid}/launch-statuses")
def project_launch_statuses(pid: str, reconciler: StatusReconciler = Depends(get_reconciler)):
    return reconciler.project_statuses(pid)


# -----------------------
# Launch projects
# -----------------------
@router.get("/launch-projects")
def list_launch_projects(category: Optional[str] = None,
                         reconciler: StatusReconciler = Depends(get_reconciler)):
    rows = reconciler.launch_projects
    if category:
        rows = [lp for lp in rows if lp.category == category]
    return [lp.model_dump() for lp in rows]


@router.post("/launch-projects")
def create_launch_project(body: LaunchProjectCreate, store: DocumentStore = Depends(get_store)):
    title = body.title.strip()
    if not title:
        raise HTTPException(400, "title is required")
    category = require_category(body.category)

    lp = LaunchProject(
        title=title,
        category=category,
        status="completed" if is_completed_category(category) else "live",
    )
    lp.project_id = body.project_id or lp.id
    try:
        lp = store.add(lp)
    except StoreError as e:
        raise store_unavailable(e)
    return lp.model_dump()


@router.patch("/launch-projects/{lpid}")
def rename_launch_project(lpid: str, body: LaunchProjectRename, store: DocumentStore = Depends(get_store)):
    title = body.title.strip()
    if not title:
        raise HTTPException(400, "title is required")
    try:
        if store.get(LaunchProject, lpid) is None:
            raise HTTPException(404, "LaunchProject not found")
        lp = store.update(LaunchProject, lpid, title=title)
    except StoreError as e:
        raise store_unavailable(e)
    return lp.model_dump()


@router.delete("/launch-projects/{lpid}")
def delete_launch_project(lpid: str, reconciler: StatusReconciler = Depends(get_reconciler)):
    try:
        deleted = reconciler.delete_launch_project(lpid)
    except StoreError as e:
        raise store_unavailable(e)
    if not deleted:
        raise HTTPException(404, "LaunchProject not found")
    return {"ok": True}


# -----------------------
# Launch board
# -----------------------
@router.get("/launch/board")
def launch_board(category: str = CATEGORIES[0], q: Optional[str] = None,
                 sort: str = Query("title", pattern="^(title|distribution)$"),
                 order: str = Query("asc", pattern="^(asc|desc)$"),
                 platforms: Optional[str] = None,
                 reconciler: StatusReconciler = Depends(get_reconciler)):
    category = require_category(category)
    platform_ids = [x for x in (platforms or "").split(",") if x] or None
    return reconciler.board(category, q=q, sort=sort, order=order, platform_ids=platform_ids)


@router.post("/launch/cells/click")
def click_cell(body: CellClick, reconciler: StatusReconciler = Depends(get_reconciler)):
    category = require_category(body.category)
    cell = reconciler.click(body.project_id, body.platform_id, category, body.button,
                            editing=body.editing)
    return sanitize_for_json(cell)


@router.post("/launch/cells/note")
def save_note(body: NoteSave, reconciler: StatusReconciler = Depends(get_reconciler)):
    category = require_category(body.category)
    cell = reconciler.save_note(body.project_id, body.platform_id, category, body.text)
    return sanitize_for_json(cell)


@router.post("/launch/save-all")
def save_all(reconciler: StatusReconciler = Depends(get_reconciler)):
    result = reconciler.save_all()
    return {"ok": not result.failed, "saved": len(result.applied), "failed": result.failed}


# -----------------------
# Outbox
# -----------------------
@router.get("/outbox")
def list_outbox(request: Request):
    return sanitize_for_json(request.app.state.outbox.pending())


@router.post("/outbox/flush")
def flush_outbox(request: Request):
    result = request.app.state.outbox.flush()
    return sanitize_for_json(result)


# -----------------------
# App
# -----------------------
def create_app(settings: Optional[Settings] = None, engine=None) -> FastAPI:
    settings = settings or get_settings()
    engine = engine if engine is not None else make_engine(settings.database_url)
    init_db(engine)

    app = FastAPI(title="Webtoon Launch Tracker")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = DocumentStore(engine)
    perf = PerformanceMonitor(enabled=settings.is_development)
    catalog = PlatformCatalog()
    outbox = Outbox(store)
    reconciler = StatusReconciler(store, catalog=catalog, outbox=outbox, perf=perf)
    reconciler.attach()

    app.state.settings = settings
    app.state.store = store
    app.state.perf = perf
    app.state.catalog = catalog
    app.state.outbox = outbox
    app.state.reconciler = reconciler

    @app.on_event("shutdown")
    def on_shutdown():
        reconciler.detach()
        if len(outbox):
            logger.warning("%d launch status writes still pending at shutdown", len(outbox))

    app.include_router(router)
    return app


def run():
    import uvicorn

    from .logging_config import setup_logging

    settings = get_settings()
    setup_logging(settings)
    uvicorn.run("launch_tracker.main:create_app", factory=True,
                host=settings.host, port=settings.port)
