# app/api/v1/orders.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_current_claims, get_settlement_engine
from app.core.errors import OrderNotFound
from app.core.tokens import Claims
from app.models.order import Order as OrderModel
from app.schemas.order import Order as OrderOut, OrderCreate, OrderPage, OrderStatistics
from app.services.orders import OrderSettlementEngine

router = APIRouter()

def _owned(order: OrderModel, claims: Claims) -> OrderModel:
    # pedido de outro usuário é tratado como inexistente
    if order.user_id != claims.subject_id:
        raise OrderNotFound()
    return order

@router.post("/create", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    body: OrderCreate,
    claims: Claims = Depends(get_current_claims),
    engine: OrderSettlementEngine = Depends(get_settlement_engine),
):
    return engine.create_order(claims.subject_id, body.items)

@router.get("/list", response_model=OrderPage)
def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    claims: Claims = Depends(get_current_claims),
    engine: OrderSettlementEngine = Depends(get_settlement_engine),
):
    orders, total = engine.get_user_orders(claims.subject_id, page, page_size)
    return OrderPage(
        orders=[OrderOut.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )

@router.get("/statistics", response_model=OrderStatistics)
def order_statistics(
    claims: Claims = Depends(get_current_claims),
    engine: OrderSettlementEngine = Depends(get_settlement_engine),
):
    return engine.get_order_statistics(claims.subject_id)

@router.get("/no/{order_no}", response_model=OrderOut)
def get_order_by_number(
    order_no: str,
    claims: Claims = Depends(get_current_claims),
    engine: OrderSettlementEngine = Depends(get_settlement_engine),
):
    return _owned(engine.get_order_by_number(order_no), claims)

@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    claims: Claims = Depends(get_current_claims),
    engine: OrderSettlementEngine = Depends(get_settlement_engine),
):
    return _owned(engine.get_order_by_id(order_id), claims)

@router.post("/{order_id}/pay", response_model=OrderOut)
def pay_order(
    order_id: int,
    claims: Claims = Depends(get_current_claims),
    engine: OrderSettlementEngine = Depends(get_settlement_engine),
):
    _owned(engine.get_order_by_id(order_id), claims)
    return engine.pay_order(order_id)

@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    claims: Claims = Depends(get_current_claims),
    engine: OrderSettlementEngine = Depends(get_settlement_engine),
):
    _owned(engine.get_order_by_id(order_id), claims)
    return engine.cancel_order(order_id)
