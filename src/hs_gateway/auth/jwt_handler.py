"""JWT verification for tokens issued by the user service.

This service never issues tokens in production; the user service signs them
with the shared JWT_SECRET (HS256). `create_access_token` exists for local
tooling and tests.

Accepted claims:
  - sub (or legacy userId): user id
  - role: client / provider / admin (optional, defaults to client)
  - type: must be "access" when present
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from config.settings import settings
from src.hs_common.errors import InvalidCredentialsError, MissingIdentityError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"
_DEV_EXPIRE = timedelta(minutes=30)


def create_access_token(user_id: str, role: str = "client") -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + _DEV_EXPIRE,
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Raises:
        InvalidCredentialsError: signature invalid, token expired, or not an access token.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    token_type = payload.get("type")
    if token_type is not None and token_type != "access":
        raise InvalidCredentialsError()
    return payload


def extract_user_id(payload: dict[str, Any]) -> str:
    """Return the user id claim as a string; reject empty/zero ids."""
    raw = payload.get("sub") or payload.get("userId")
    if raw is None or str(raw).strip() in ("", "0"):
        raise MissingIdentityError()
    return str(raw)
