from typing import Iterable, Dict
from sqlalchemy.orm import Session
from sqlalchemy import select, update
from app.crud.base import CRUDBase
from app.models.book import Book

class CRUDBook(CRUDBase[Book]):
    def get_many(self, db: Session, ids: Iterable[int]) -> Dict[int, Book]:
        wanted = set(ids)
        if not wanted:
            return {}
        rows = db.execute(select(Book).where(Book.id.in_(wanted))).scalars().all()
        return {b.id: b for b in rows}

    def settle_line(self, db: Session, *, book_id: int, quantity: int) -> bool:
        """
        Baixa de estoque condicional, numa única instrução:
        ``stock -= q, sale += q WHERE id = ? AND stock >= q``.
        Retorna False quando nenhuma linha foi afetada.
        """
        res = db.execute(
            update(Book)
            .where(Book.id == book_id, Book.stock >= quantity)
            .values(stock=Book.stock - quantity, sale=Book.sale + quantity)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

book_crud = CRUDBook(Book)
