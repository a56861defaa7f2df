from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

# ---------------------------
# Entrada
# ---------------------------

class OrderLineIn(BaseModel):
    book_id: int
    quantity: int = Field(gt=0)
    price: int = Field(ge=0)  # preço unitário em centavos, congelado no pedido

class OrderCreate(BaseModel):
    items: List[OrderLineIn]

# ---------------------------
# Saída
# ---------------------------

class OrderItem(BaseModel):
    id: int
    book_id: int
    quantity: int
    price: int
    subtotal: int

    model_config = {"from_attributes": True}

class Order(BaseModel):
    id: int
    order_no: str
    user_id: int
    total_amount: int
    status: int
    is_paid: bool
    payment_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItem] = []

    model_config = {"from_attributes": True}

class OrderPage(BaseModel):
    orders: List[Order]
    total: int
    page: int
    page_size: int
    total_pages: int

class OrderStatistics(BaseModel):
    total_orders: int = 0
    total_amount: int = 0
    paid_orders: int = 0
    pending_orders: int = 0
