from pydantic import BaseModel, Field
from typing import Optional, Literal

RoleLiteral = Literal["Admin", "Waiter", "Cashier", "Kitchen"]

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[dict] = None

class LoginIn(BaseModel):
    email: str
    password: str

class UserIn(BaseModel):
    name: str
    email: str
    password: str = Field(min_length=4)
    role: RoleLiteral = "Waiter"

class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[RoleLiteral] = None
    sound_enabled: Optional[bool] = None
    volume: Optional[int] = Field(default=None, ge=0, le=100)

class PasswordIn(BaseModel):
    password: str = Field(min_length=4)
