# app/api/v1/router.py
from fastapi import APIRouter
from app.api.v1 import (
    admin,
    auth,
    books,
    orders,
)

api_router = APIRouter()

api_router.include_router(auth.router,   prefix="/user",  tags=["user"])
api_router.include_router(books.router,  prefix="/book",  tags=["book"])
api_router.include_router(orders.router, prefix="/order", tags=["order"])
api_router.include_router(admin.router,  prefix="/admin", tags=["admin"])
