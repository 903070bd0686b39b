from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session


def make_engine(db_url: str, echo: bool = False):
    # sqlite는 스레드풀(FastAPI sync 라우트)에서 같이 쓰므로 check_same_thread 해제
    connect_args = {}
    kwargs = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(db_url, echo=echo, connect_args=connect_args, **kwargs)


def init_db(engine):
    from . import models  # noqa: F401  (테이블 등록)
    SQLModel.metadata.create_all(engine)


def session_scope(engine) -> Session:
    return Session(engine, expire_on_commit=False)
