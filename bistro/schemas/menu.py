from pydantic import BaseModel, Field
from typing import Optional, Literal

CategoryLiteral = Literal["Starters", "Mains", "Desserts", "Drinks"]

class PricedOptionIn(BaseModel):
    name: str = Field(min_length=1)
    price: float = Field(ge=0)

class MenuItemIn(BaseModel):
    name: str = Field(min_length=1)
    price: float = Field(ge=0)
    category: CategoryLiteral
    description: Optional[str] = None
    is_active: bool = True
    variations: list[PricedOptionIn] = []
    add_ons: list[PricedOptionIn] = []

class MenuItemUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[CategoryLiteral] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    variations: Optional[list[PricedOptionIn]] = None
    add_ons: Optional[list[PricedOptionIn]] = None

class TableIn(BaseModel):
    table_number: str = Field(min_length=1)
    status: Literal["Available", "Occupied", "Waiting for Bill"] = "Available"

class TableUpdate(BaseModel):
    table_number: Optional[str] = None
    status: Optional[Literal["Available", "Occupied", "Waiting for Bill"]] = None
