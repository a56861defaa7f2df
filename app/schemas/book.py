from typing import Optional
from pydantic import BaseModel

class Book(BaseModel):
    id: int
    title: str
    author: Optional[str] = None
    description: Optional[str] = None
    price: int
    stock: int
    sale: int = 0
    status: int

    model_config = {"from_attributes": True}
