# app/services/orders.py
"""
Criação e liquidação de pedidos.

Estoque é checado duas vezes: de forma otimista na criação (sem reserva) e de
forma autoritativa no pagamento. A checagem do pagamento é a própria baixa
condicional (``UPDATE ... WHERE stock >= q``), então dois pagamentos
concorrentes disputando o mesmo livro nunca deixam o estoque negativo, mesmo
sob read-committed. A única fonte de atomicidade é a transação do banco.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Callable, List, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import (
    AlreadyPaid,
    BookstoreError,
    CreationFailed,
    EmptyOrder,
    InputError,
    InsufficientStock,
    InvalidLine,
    ItemNotFound,
    ItemUnlisted,
    OrderCancelled,
    OrderNotFound,
    SettlementFailed,
)
from app.crud.book import book_crud
from app.crud.order import order_crud
from app.models.book import Book, BookStatus
from app.models.order import Order, OrderItem, OrderStatus
from app.schemas.order import OrderLineIn, OrderStatistics

log = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderSettlementEngine:
    def __init__(self, session_factory: sessionmaker, *, clock: Callable[[], datetime] = _utcnow):
        self._session_factory = session_factory
        self._clock = clock

    # ------------------------------------------------------------------ #
    # criação
    # ------------------------------------------------------------------ #
    def create_order(self, subject_id: int, lines: Sequence[OrderLineIn]) -> Order:
        if not lines:
            raise EmptyOrder()
        for line in lines:
            if line.quantity <= 0 or line.price < 0:
                raise InvalidLine(f"Item inválido para o livro {line.book_id}.")

        with self._session_factory() as db:
            self._check_availability(db, lines)

            items: List[OrderItem] = [
                OrderItem(
                    book_id=line.book_id,
                    quantity=line.quantity,
                    price=line.price,
                    subtotal=line.price * line.quantity,
                )
                for line in lines
            ]
            order = Order(
                user_id=subject_id,
                order_no=order_crud.generate_order_no(),
                total_amount=sum(i.subtotal for i in items),
                status=OrderStatus.PENDING,
                is_paid=False,
            )
            try:
                order_crud.add_with_items(db, order, items)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                log.error("order creation rolled back subject_id=%s: %s", subject_id, exc)
                raise CreationFailed() from exc

            db.refresh(order)
            log.info("order created order_no=%s subject_id=%s total=%s", order.order_no, subject_id, order.total_amount)
            return order

    def _check_availability(self, db: Session, lines: Sequence[OrderLineIn]) -> None:
        # pré-checagem, não reserva: o pagamento revalida
        wanted = Counter()
        for line in lines:
            wanted[line.book_id] += line.quantity
        books = book_crud.get_many(db, wanted.keys())
        for book_id, qty in wanted.items():
            book = books.get(book_id)
            if book is None:
                raise ItemNotFound(book_id)
            if book.status != BookStatus.LISTED:
                raise ItemUnlisted(book_id)
            if book.stock < qty:
                raise InsufficientStock(book_id, qty, book.stock)

    # ------------------------------------------------------------------ #
    # pagamento
    # ------------------------------------------------------------------ #
    def pay_order(self, order_id: int) -> Order:
        with self._session_factory() as db:
            order = db.get(Order, order_id)
            if order is None:
                raise OrderNotFound()
            if order.is_paid:
                raise AlreadyPaid()
            if order.status == OrderStatus.CANCELLED:
                raise OrderCancelled()
            lines: List[Tuple[int, int]] = [(i.book_id, i.quantity) for i in order.items]

            try:
                if not order_crud.mark_paid(db, order_id=order_id, paid_at=self._clock()):
                    # outro pagamento/cancelamento chegou antes
                    raise self._transition_conflict(db, order_id)
                for book_id, qty in lines:
                    if not book_crud.settle_line(db, book_id=book_id, quantity=qty):
                        available = db.scalar(select(Book.stock).where(Book.id == book_id))
                        if available is None:
                            raise ItemNotFound(book_id)
                        raise InsufficientStock(book_id, qty, available)
                db.commit()
            except BookstoreError as exc:
                db.rollback()
                log.info("payment rejected order_id=%s: %s", order_id, exc.code)
                raise
            except SQLAlchemyError as exc:
                db.rollback()
                log.error("payment rolled back order_id=%s: %s", order_id, exc)
                raise SettlementFailed() from exc

            db.refresh(order)
            log.info("order paid order_no=%s", order.order_no)
            return order

    def cancel_order(self, order_id: int) -> Order:
        with self._session_factory() as db:
            order = db.get(Order, order_id)
            if order is None:
                raise OrderNotFound()
            if order.is_paid:
                raise AlreadyPaid()
            if order.status == OrderStatus.CANCELLED:
                return order
            try:
                if not order_crud.mark_cancelled(db, order_id=order_id):
                    raise self._transition_conflict(db, order_id)
                db.commit()
            except BookstoreError:
                db.rollback()
                raise
            except SQLAlchemyError as exc:
                db.rollback()
                log.error("cancel rolled back order_id=%s: %s", order_id, exc)
                raise SettlementFailed() from exc
            db.refresh(order)
            log.info("order cancelled order_no=%s", order.order_no)
            return order

    @staticmethod
    def _transition_conflict(db: Session, order_id: int) -> BookstoreError:
        status = db.scalar(select(Order.status).where(Order.id == order_id))
        if status is None:
            return OrderNotFound()
        if status == OrderStatus.CANCELLED:
            return OrderCancelled()
        return AlreadyPaid()

    # ------------------------------------------------------------------ #
    # leitura
    # ------------------------------------------------------------------ #
    def get_order_by_id(self, order_id: int) -> Order:
        with self._session_factory() as db:
            order = db.get(Order, order_id)
            if order is None:
                raise OrderNotFound()
            return order

    def get_order_by_number(self, order_no: str) -> Order:
        with self._session_factory() as db:
            order = order_crud.get_by_no(db, order_no)
            if order is None:
                raise OrderNotFound()
            return order

    def get_user_orders(self, subject_id: int, page: int = 1, page_size: int = 10) -> Tuple[List[Order], int]:
        if page < 1 or not 1 <= page_size <= MAX_PAGE_SIZE:
            raise InputError(f"Paginação inválida (page >= 1, 1 <= page_size <= {MAX_PAGE_SIZE}).")
        with self._session_factory() as db:
            return order_crud.list_for_user(db, user_id=subject_id, page=page, page_size=page_size)

    def get_order_statistics(self, subject_id: int) -> OrderStatistics:
        with self._session_factory() as db:
            return order_crud.statistics(db, user_id=subject_id)
