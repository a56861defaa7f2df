# app/db/session.py
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

def _normalize(url: str) -> str:
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url and url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url

def build_engine(url: str | None = None) -> Engine:
    """
    Cria o engine com limites de tempo em todas as chamadas ao banco.

    - SQLite: ``timeout`` do driver (espera pelo lock de escrita) e
      ``check_same_thread=False`` (sessões passam pelo threadpool do FastAPI).
    - PostgreSQL: ``connect_timeout`` + ``statement_timeout`` por conexão.
    """
    url = _normalize(url or settings.DATABASE_URL)
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": settings.DB_POOL_TIMEOUT},
        )

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        return engine

    connect_args = {}
    if url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": int(settings.DB_POOL_TIMEOUT),
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
        }
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_args=connect_args,
    )

def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

def get_db(request: Request) -> Generator[Session, None, None]:
    # session factory criada no startup (app.state), nunca global
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
