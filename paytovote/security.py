import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from paytovote import config
from paytovote.errors import AuthError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# Hash a password
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


# Verify a plain password against a hash
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# Create JWT access token
def create_access_token(data: dict, secret_key: str = config.SECRET_KEY,
                        expires_minutes: int = config.ACCESS_TOKEN_EXPIRE_MINUTES):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire, "jti": uuid.uuid4().hex})
    encoded_jwt = jwt.encode(dict(to_encode), secret_key, algorithm=config.ALGORITHM)
    return encoded_jwt, to_encode


# Decode JWT token
def decode_access_token(token: str, secret_key: str = config.SECRET_KEY) -> dict:
    try:
        return jwt.decode(token, secret_key, algorithms=[config.ALGORITHM])
    except JWTError:
        raise AuthError("Token is invalid or expired")
