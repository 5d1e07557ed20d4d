# routes/auth/JWTSecurity.py

from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError

from config import JWT_SECRET_KEY, JWT_EXPIRE_HOURS, logger

# JWT configuration
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE = timedelta(hours=JWT_EXPIRE_HOURS)


def create_access_token(data: dict, expires_delta: timedelta = None):
    """
    Generates an access token with an expiration time.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta if expires_delta else ACCESS_TOKEN_EXPIRE)
    to_encode.update({"exp": expire, "token_type": "access"})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str):
    """
    Verifies an access token. Returns the payload or None.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[ALGORITHM])
        if payload.get("token_type") != "access":
            raise JWTError("Invalid token type")
        if not payload.get("sub"):
            raise JWTError("Invalid token payload: missing user ID")
        return payload
    except JWTError as e:
        logger.error(f"Token verification failed: {str(e)}")
        return None
