import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv(override=True)


def _split_csv(v: str) -> List[str]:
    return [x.strip() for x in v.split(",") if x.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./launch_tracker.db"
    log_level: str = "INFO"
    log_dir: str = "logs"
    app_env: str = "production"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


def get_settings() -> Settings:
    """환경변수(.env 포함)에서 설정을 읽는다."""
    return Settings(
        database_url=(os.getenv("DATABASE_URL") or "sqlite:///./launch_tracker.db").strip(),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
        log_dir=(os.getenv("LOG_DIR") or "logs").strip(),
        app_env=(os.getenv("APP_ENV") or "production").strip().lower(),
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS") or "*"),
        host=(os.getenv("HOST") or "127.0.0.1").strip(),
        port=int(os.getenv("PORT") or 8000),
    )
