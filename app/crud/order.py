import secrets
import time
from datetime import datetime
from typing import List, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import select, update, func, case

from app.crud.base import CRUDBase
from app.models.order import Order, OrderItem, OrderStatus
from app.schemas.order import OrderStatistics

class CRUDOrder(CRUDBase[Order]):
    @staticmethod
    def generate_order_no() -> str:
        # ORD + nanossegundos + sufixo aleatório (dois pedidos no mesmo ns não colidem)
        return f"ORD{time.time_ns()}{secrets.token_hex(3).upper()}"

    def get_by_no(self, db: Session, order_no: str) -> Order | None:
        return db.execute(select(Order).where(Order.order_no == order_no)).scalar_one_or_none()

    def list_for_user(self, db: Session, *, user_id: int, page: int, page_size: int) -> Tuple[List[Order], int]:
        total = db.scalar(select(func.count()).select_from(Order).where(Order.user_id == user_id)) or 0
        rows = db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()
        return list(rows), int(total)

    def statistics(self, db: Session, *, user_id: int) -> OrderStatistics:
        row = db.execute(
            select(
                func.count(Order.id),
                func.coalesce(func.sum(Order.total_amount), 0),
                func.coalesce(func.sum(case((Order.is_paid.is_(True), 1), else_=0)), 0),
                func.coalesce(func.sum(case((Order.status == OrderStatus.PENDING, 1), else_=0)), 0),
            ).where(Order.user_id == user_id)
        ).one()
        return OrderStatistics(
            total_orders=int(row[0]),
            total_amount=int(row[1]),
            paid_orders=int(row[2]),
            pending_orders=int(row[3]),
        )

    def add_with_items(self, db: Session, order: Order, items: List[OrderItem]) -> Order:
        """Insere pedido + itens na transação corrente (sem commit)."""
        order.items = list(items)
        db.add(order)
        db.flush()  # popula order.id e item.order_id
        return order

    def mark_paid(self, db: Session, *, order_id: int, paid_at: datetime) -> bool:
        res = db.execute(
            update(Order)
            .where(Order.id == order_id, Order.is_paid.is_(False), Order.status == OrderStatus.PENDING)
            .values(status=OrderStatus.PAID, is_paid=True, payment_time=paid_at)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def mark_cancelled(self, db: Session, *, order_id: int) -> bool:
        res = db.execute(
            update(Order)
            .where(Order.id == order_id, Order.is_paid.is_(False), Order.status == OrderStatus.PENDING)
            .values(status=OrderStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

order_crud = CRUDOrder(Order)
