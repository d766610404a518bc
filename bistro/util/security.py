import jwt
from datetime import datetime, timedelta, timezone
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from bistro.config import settings

ph = PasswordHasher()

def hash_pw(p: str) -> str:
    return ph.hash(p)

def verify_pw(hashv: str, p: str) -> bool:
    try:
        return ph.verify(hashv, p)
    except (VerificationError, InvalidHashError):
        return False

def create_token(sub: str, role: str | None = None) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.JWT_EXP_MIN)
    payload = {"sub": sub, "iss": settings.JWT_ISS, "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.APP_SECRET, algorithm="HS256")

def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.APP_SECRET, algorithms=["HS256"], issuer=settings.JWT_ISS,
                      options={"verify_aud": False})
