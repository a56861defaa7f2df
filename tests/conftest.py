"""Shared pytest fixtures for the bookstore backend tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.security_password import hash_password
from app.core.tokens import TokenManager
from app.db.base import Base
from app.db.session import build_engine, build_sessionmaker
from app.models.book import Book, BookStatus
from app.models.user import User
from app.services.orders import OrderSettlementEngine
from tests.fakes.fake_credential_store import FakeCredentialStore

TEST_SECRET = "test-secret-key"


@pytest.fixture
def db_engine(tmp_path: Path) -> Engine:
    """File-backed SQLite engine with all tables created."""
    engine = build_engine(f"sqlite:///{tmp_path / 'bookstore.db'}")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(db_engine: Engine) -> sessionmaker:
    return build_sessionmaker(db_engine)


@pytest.fixture
def store() -> FakeCredentialStore:
    return FakeCredentialStore()


@pytest.fixture
def tokens(store: FakeCredentialStore) -> TokenManager:
    return TokenManager(store, secret_key=TEST_SECRET)


@pytest.fixture
def settlement(session_factory: sessionmaker) -> OrderSettlementEngine:
    return OrderSettlementEngine(session_factory)


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def make_user(session_factory: sessionmaker, username: str = "alice", *, password: str = "secret123", is_admin: bool = False) -> int:
    with session_factory() as db:
        user = User(
            username=username,
            email=f"{username}@example.com",
            hashed_password=hash_password(password),
            is_admin=is_admin,
        )
        db.add(user)
        db.commit()
        return user.id


def make_book(
    session_factory: sessionmaker,
    *,
    stock: int,
    price: int = 1000,
    status: int = BookStatus.LISTED,
    book_id: int | None = None,
    title: str = "Dom Casmurro",
) -> int:
    with session_factory() as db:
        book = Book(title=title, price=price, stock=stock, sale=0, status=status)
        if book_id is not None:
            book.id = book_id
        db.add(book)
        db.commit()
        return book.id


def book_counters(session_factory: sessionmaker, book_id: int) -> tuple[int, int]:
    with session_factory() as db:
        book = db.get(Book, book_id)
        return book.stock, book.sale


def count_rows(session_factory: sessionmaker, model) -> int:
    with session_factory() as db:
        return db.scalar(select(func.count()).select_from(model))
