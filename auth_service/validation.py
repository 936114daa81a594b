# auth_service/validation.py - registration / login field checks
import re
from enum import Enum
from typing import Optional

EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9_+&*-]+(?:\.[a-zA-Z0-9_+&*-]+)*@(?:[a-zA-Z0-9-]+\.)+[a-zA-Z]{2,7}$"
)
PASSWORD_SYMBOLS = "@#$%^&+=!"
PASSWORD_MIN_LENGTH = 8


class InputProblem(str, Enum):
    MISSING_FIELDS = "missing_fields"
    INVALID_EMAIL = "invalid_email"
    WEAK_PASSWORD = "weak_password"
    PASSWORD_MISMATCH = "password_mismatch"


MESSAGES = {
    InputProblem.MISSING_FIELDS: "All fields are required",
    InputProblem.INVALID_EMAIL: "Invalid email format",
    InputProblem.WEAK_PASSWORD: (
        "Password must be at least 8 characters and contain a capital letter, "
        "a lowercase letter, a number, and a symbol"
    ),
    InputProblem.PASSWORD_MISMATCH: "Passwords do not match",
}


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def is_valid_password(password: str) -> bool:
    if len(password) < PASSWORD_MIN_LENGTH:
        return False
    if any(ch.isspace() for ch in password):
        return False
    return (
        any("A" <= ch <= "Z" for ch in password)
        and any("a" <= ch <= "z" for ch in password)
        and any("0" <= ch <= "9" for ch in password)
        and any(ch in PASSWORD_SYMBOLS for ch in password)
    )


def check_registration(email, password, confirm_password, phone) -> Optional[InputProblem]:
    """Return the first problem with a registration form, or None."""
    if not all([email, password, confirm_password, phone]):
        return InputProblem.MISSING_FIELDS
    if not is_valid_email(email):
        return InputProblem.INVALID_EMAIL
    if not is_valid_password(password):
        return InputProblem.WEAK_PASSWORD
    if password != confirm_password:
        return InputProblem.PASSWORD_MISMATCH
    return None


def check_login(email, password) -> Optional[InputProblem]:
    if not email or not password:
        return InputProblem.MISSING_FIELDS
    return None
