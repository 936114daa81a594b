# auth_service/hashing.py
from loguru import logger
from passlib.context import CryptContext

from .errors import HashingFailure

# Password Hashing: unsalted SHA-256 as lowercase hex, so the same password
# always maps to the same stored digest
pwd_context = CryptContext(schemes=["hex_sha256"])


def hash_password(password: str) -> str:
    try:
        return pwd_context.hash(password)
    except Exception as e:
        logger.error(f"Failed to hash password: {e!r}")
        raise HashingFailure("Password hashing unavailable") from e


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        # malformed stored digest
        logger.warning(f"Could not verify password against stored digest: {e!r}")
        return False
