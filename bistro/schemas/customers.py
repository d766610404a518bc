from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from bistro.schemas.orders import PayMethodLiteral

class CustomerIn(BaseModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    is_active: Optional[bool] = None

class CreditPaymentIn(BaseModel):
    amount: float = Field(gt=0)
    description: Optional[str] = None

class ExpenseIn(BaseModel):
    date: Optional[datetime] = None
    category: str
    amount: float = Field(ge=0)
    payment_method: PayMethodLiteral
    notes: Optional[str] = None

class ExpenseUpdate(BaseModel):
    date: Optional[datetime] = None
    category: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    payment_method: Optional[PayMethodLiteral] = None
    notes: Optional[str] = None

class PrinterIn(BaseModel):
    name: str
    station: str  # KITCHEN | CASHIER
    connection_url: Optional[str] = None
    is_default: bool = False
