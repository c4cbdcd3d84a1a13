from datetime import datetime, timedelta, timezone
from typing import Any, Union
from jose import jwt, JWTError
from passlib.context import CryptContext
from condo.core.config import settings

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

# Token subjects are namespaced by account kind: "admin:3", "user:17", "maintenance:2"
ACCOUNT_KINDS = ("admin", "user", "maintenance")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(kind: str, subject: Union[str, Any], expires_delta: timedelta = None) -> str:
    if kind not in ACCOUNT_KINDS:
        raise ValueError(f"Unknown account kind: {kind}")
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": f"{kind}:{subject}"}
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def decode_access_token(token: str) -> tuple[str, int] | None:
    """
    Returns (kind, account_id) for a valid token, None otherwise.
    """
    try:
        decoded_token = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    kind, _, raw_id = str(decoded_token.get("sub", "")).partition(":")
    if kind not in ACCOUNT_KINDS or not raw_id.isdigit():
        return None
    return kind, int(raw_id)
