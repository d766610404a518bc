from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from bistro.schemas.common import Token, LoginIn, UserIn
from bistro.util.security import create_token, hash_pw, verify_pw
from bistro.util.rows import user_row
from bistro.models.core import User, UserRole
from bistro.db import get_db
from bistro.deps import require_user

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=Token)
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.lower().strip(), User.deleted_at.is_(None)).first()
    if not user or not verify_pw(user.pass_hash, body.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return Token(access_token=create_token(user.id, user.role.value), user=user_row(user))

@router.post("/register", response_model=Token, status_code=201)
def register(body: UserIn, db: Session = Depends(get_db)):
    email = body.email.lower().strip()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(400, detail="User already exists with this email")
    # self-registration never grants more than waiter; admins promote via /auth/users
    u = User(name=body.name.strip(), email=email, pass_hash=hash_pw(body.password), role=UserRole.WAITER)
    db.add(u)
    db.commit()
    db.refresh(u)
    return Token(access_token=create_token(u.id, u.role.value), user=user_row(u))

@router.get("/me")
def me(user: User = Depends(require_user)):
    return user_row(user)
