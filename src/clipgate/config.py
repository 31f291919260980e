"""Application configuration builder."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .core.config import PipelineSettings
from .db.db_init import init_db


@dataclass(slots=True)
class ScratchPaths:
    root: Path
    staging: Path


@dataclass(slots=True)
class AppConfig:
    settings: PipelineSettings
    scratch_paths: ScratchPaths
    database_url: str
    engine: Engine
    session_factory: sessionmaker[Session]


def _ensure_paths(paths: ScratchPaths) -> None:
    paths.root.mkdir(parents=True, exist_ok=True)
    paths.staging.mkdir(parents=True, exist_ok=True)


def create_db_engine(database_url: str) -> Engine:
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        # Repository calls run in worker threads.
        connect_args["check_same_thread"] = False
    return create_engine(database_url, future=True, connect_args=connect_args)


def load_config(settings: PipelineSettings | None = None) -> AppConfig:
    """Load configuration from environment (SQLite by default)."""
    settings = settings or PipelineSettings.build_default()
    scratch_paths = ScratchPaths(
        root=settings.scratch_root,
        staging=settings.staging_local_root,
    )
    _ensure_paths(scratch_paths)

    engine = create_db_engine(settings.database_url)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)

    init_db(engine)

    return AppConfig(
        settings=settings,
        scratch_paths=scratch_paths,
        database_url=settings.database_url,
        engine=engine,
        session_factory=session_factory,
    )


__all__ = ["AppConfig", "ScratchPaths", "create_db_engine", "load_config"]
