from app.db.base import Base  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.book import Book, BookStatus  # noqa: F401
from app.models.order import Order, OrderItem, OrderStatus  # noqa: F401
