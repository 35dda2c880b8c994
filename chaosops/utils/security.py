"""Security utilities: JWT tokens, password hashing, pairing code generation."""

import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from chaosops.config import settings


# --- Password Hashing ---

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return bcrypt.checkpw(password.encode(), hashed.encode())


# --- JWT Tokens ---

def create_access_token(user_id: str, organisation_id: str, role: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": user_id,
        "org": organisation_id,
        "role": role,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


# --- Pairing Code ---

def generate_pairing_code(length: int = 6) -> str:
    """Generate a random numeric code without a leading zero."""
    low = 10 ** (length - 1)
    return str(secrets.randbelow(9 * low) + low)
