"""
Credentials and access tokens.

Passwords are stored as bcrypt hashes. Access tokens are HS256 JWTs that
carry the account id; plan and limits are always re-read from the store
so a plan change takes effect on the next request.
"""

import datetime
from typing import Optional

import bcrypt
import jwt

from qrlinks.core.exceptions import AuthenticationError
from qrlinks.core.setting import settings


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def encode_token(account_id: int, days: Optional[int] = None) -> str:
    payload = {
        "sub": str(account_id),
        "exp": datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(days=days or settings.JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> int:
    """
    Decode an access token.

    Returns:
        The account id carried by the token

    Raises:
        AuthenticationError: If the token is expired, tampered with or malformed
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return int(payload["sub"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise AuthenticationError("Invalid token")
