import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from bistro.db import get_db
from bistro.models.core import User, UserRole
from bistro.realtime import NotificationHub
from bistro.services.dispatch import PrintDispatcher
from bistro.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)

def require_auth(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> str:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access denied. No token provided.")
    try:
        data = decode_token(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return data["sub"]

def require_user(sub: str = Depends(require_auth), db: Session = Depends(get_db)) -> User:
    user = db.get(User, sub)
    if not user or user.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user

def require_role(*roles: UserRole):
    """Dependency: the caller's role must be one of ``roles``."""
    def _dep(user: User = Depends(require_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Access denied. Insufficient permissions.")
        return user
    return _dep

# process-wide handles created at startup (see main.py)
def get_hub(request: Request) -> NotificationHub:
    return request.app.state.hub

def get_dispatcher(request: Request) -> PrintDispatcher:
    return request.app.state.dispatcher
