"""
Authentication helpers: JWT verification and contact normalisation.

Accounts live with the external identity provider; this service only
verifies the bearer tokens it issues.
"""

import os
import re
import logging
from datetime import timedelta
from typing import Optional
import phonenumbers
from jose import JWTError, jwt
from dotenv import load_dotenv
from golf_league.utils.datetime_utils import utcnow

load_dotenv()

logger = logging.getLogger(__name__)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed access token. Used by tests and local tooling."""
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT.

    Returns:
        Token payload, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.debug(f"Token verification failed: {e}")
        return None


def get_user_id(payload: dict) -> Optional[str]:
    """Identity-provider user id from a token payload ("sub", or legacy "user_id")."""
    user_id = payload.get("sub") or payload.get("user_id")
    return str(user_id) if user_id is not None else None


def normalize_phone_number(phone: str, default_region: str = "US") -> str:
    """
    Normalise a phone number to E.164.

    Raises:
        ValueError: If the number cannot be parsed or is not valid
    """
    if not phone or not phone.strip():
        raise ValueError("Phone number is required")
    try:
        parsed = phonenumbers.parse(phone, default_region)
    except phonenumbers.NumberParseException as e:
        raise ValueError(f"Invalid phone number: {phone}") from e
    if not phonenumbers.is_valid_number(parsed):
        raise ValueError(f"Invalid phone number: {phone}")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def validate_phone_number(phone: str) -> bool:
    try:
        normalize_phone_number(phone)
        return True
    except ValueError:
        return False


def validate_email(email: str) -> bool:
    return bool(email) and bool(_EMAIL_RE.match(email.strip()))
