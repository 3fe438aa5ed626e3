"""JWT verification for tokens minted by the login service."""

from jose import JWTError, jwt

from campus.config import settings
from campus.utils.exceptions import AuthenticationError


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT. Raises 401 on failure.

    Expected payload keys:
      sub, username, is_super_admin, permissions
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")
