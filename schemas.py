from datetime import datetime, timezone
from typing import Dict

from pydantic import BaseModel, Field, EmailStr

# Each class name determines collection name (lowercased)

CART_SIZE = 300


def empty_cart() -> Dict[str, int]:
    """A fresh cart: every slot in [0, CART_SIZE) at quantity 0."""
    return {str(slot): 0 for slot in range(CART_SIZE)}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., description="Salted password hash")
    cartData: Dict[str, int] = Field(default_factory=empty_cart)
    date: datetime = Field(default_factory=utcnow)


class Product(BaseModel):
    id: int
    name: str
    image: str
    category: str
    new_price: float = Field(..., ge=0)
    old_price: float = Field(..., ge=0)
    date: datetime = Field(default_factory=utcnow)
    available: bool = True
