from pydantic import BaseModel, Field
from typing import Optional, Literal

OrderStatusLiteral = Literal["Pending", "Cooking", "Ready", "Served"]
PayMethodLiteral = Literal["Cash", "E-sewa", "Khalti", "Bank Transfer", "Credit"]

class OrderLineIn(BaseModel):
    item_id: str
    # validated by the pricing calculator so a bad quantity is a 400, not a 422
    quantity: int
    notes: Optional[str] = None
    selected_variation: Optional[str] = None
    add_ons: list[str] = []

class OrderIn(BaseModel):
    table_id: str
    items: list[OrderLineIn] = Field(min_length=1)
    session_id: Optional[str] = None

class AddItemsIn(BaseModel):
    items: list[OrderLineIn] = Field(min_length=1)

class StatusIn(BaseModel):
    status: OrderStatusLiteral

class PaymentIn(BaseModel):
    type: PayMethodLiteral
    amount: float = Field(ge=0)

class BillIn(BaseModel):
    table_id: str
    payment_methods: list[PaymentIn] = Field(min_length=1)
    discount: float = Field(default=0, ge=0)
    selected_orders: Optional[list[str]] = None
    customer_id: Optional[str] = None

class PrintKitchenIn(BaseModel):
    order_id: str

class PrintBillIn(BaseModel):
    bill_id: str
