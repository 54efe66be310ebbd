from passlib.context import CryptContext
import jwt
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from app.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

# 32 random bytes, hex encoded
SHARE_TOKEN_BYTES = 32

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    # passlib's verify runs in constant time with respect to the candidate
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> dict:
    """Raises jwt.InvalidTokenError on a bad signature, malformed token or expiry."""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])


def generate_share_token() -> str:
    return secrets.token_hex(SHARE_TOKEN_BYTES)
