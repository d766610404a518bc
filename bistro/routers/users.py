# bistro/routers/users.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from bistro.db import get_db
from bistro.deps import require_role
from bistro.models.core import User, UserRole
from bistro.models.common import utcnow
from bistro.schemas.common import UserIn, UserUpdate, PasswordIn
from bistro.util.audit import audit
from bistro.util.rows import user_row
from bistro.util.security import hash_pw

router = APIRouter(prefix="/auth/users", tags=["users"])

admin_only = require_role(UserRole.ADMIN)


def _get_user(db: Session, user_id: str) -> User:
    u = db.get(User, user_id)
    if not u or u.deleted_at is not None:
        raise HTTPException(404, detail="User not found")
    return u


@router.get("/", summary="List users")
def list_users(db: Session = Depends(get_db), me: User = Depends(admin_only)):
    users = (
        db.query(User)
        .filter(User.deleted_at.is_(None))
        .order_by(User.created_at.desc())
        .limit(500)
        .all()
    )
    return [user_row(u) for u in users]


@router.post("/", status_code=201)
def create_user(body: UserIn, db: Session = Depends(get_db), me: User = Depends(admin_only)):
    email = body.email.lower().strip()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(400, detail="User already exists with this email")
    u = User(name=body.name.strip(), email=email, pass_hash=hash_pw(body.password), role=UserRole(body.role))
    db.add(u)
    db.flush()
    audit(db, me.id, "User", u.id, "CREATE", after={"email": email, "role": body.role})
    db.commit()
    db.refresh(u)
    return user_row(u)


@router.put("/{user_id}")
def update_user(user_id: str, body: UserUpdate, db: Session = Depends(get_db), me: User = Depends(admin_only)):
    u = _get_user(db, user_id)
    before = user_row(u)
    data = body.model_dump(exclude_unset=True)

    if "email" in data and data["email"]:
        email = data["email"].lower().strip()
        clash = db.query(User).filter(User.email == email, User.id != u.id).first()
        if clash:
            raise HTTPException(400, detail="Email already exists")
        u.email = email
    if data.get("name"):
        u.name = data["name"].strip()
    if data.get("role"):
        u.role = UserRole(data["role"])
    if data.get("sound_enabled") is not None:
        u.sound_enabled = data["sound_enabled"]
    if data.get("volume") is not None:
        u.volume = data["volume"]

    audit(db, me.id, "User", u.id, "UPDATE", before=before, after=user_row(u))
    db.commit()
    db.refresh(u)
    return user_row(u)


@router.put("/{user_id}/password")
def update_password(user_id: str, body: PasswordIn, db: Session = Depends(get_db), me: User = Depends(admin_only)):
    u = _get_user(db, user_id)
    u.pass_hash = hash_pw(body.password)
    audit(db, me.id, "User", u.id, "PASSWORD_RESET")
    db.commit()
    return {"message": "Password updated successfully"}


@router.delete("/{user_id}")
def delete_user(user_id: str, db: Session = Depends(get_db), me: User = Depends(admin_only)):
    u = _get_user(db, user_id)
    if u.role == UserRole.ADMIN:
        raise HTTPException(400, detail="Cannot delete admin user")
    u.deleted_at = utcnow()
    audit(db, me.id, "User", u.id, "DELETE")
    db.commit()
    return {"message": "User deleted successfully"}
