"""FastAPI dependencies: get_current_identity, require_provider, require_admin.

Usage in any protected router:
    from src.hs_gateway.auth.dependencies import get_current_identity

    @router.get("/protected")
    async def protected(identity: Identity = Depends(get_current_identity)):
        ...
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_common.database import get_db_session
from src.hs_common.enums import UserRole
from src.hs_common.errors import (
    AdminRequiredError,
    InvalidCredentialsError,
    MissingIdentityError,
    ProviderRequiredError,
)
from src.hs_gateway.auth.identity import ClientIdentity, Identity, ProviderIdentity
from src.hs_gateway.auth.jwt_handler import decode_access_token, extract_user_id
from src.hs_provider.domain.repository import ProviderRepositoryProtocol
from src.hs_provider.infrastructure.persistence import ProviderRepository

# Tokens come from the user service; tokenUrl only feeds the Swagger "Authorize" button
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)

_providers: ProviderRepositoryProtocol = ProviderRepository()


async def resolve_identity(
    token: str,
    db: AsyncSession,
    providers: ProviderRepositoryProtocol | None = None,
) -> Identity:
    """Turn a bearer token into a capability-tagged identity.

    A user owning a provider profile is a ProviderIdentity; everyone else is a
    ClientIdentity. Shared by the HTTP dependency and the WebSocket handshake.

    Raises:
        InvalidCredentialsError / MissingIdentityError on a bad token.
    """
    payload = decode_access_token(token)
    user_id = extract_user_id(payload)
    is_admin = payload.get("role") == UserRole.ADMIN.value

    repo = providers or _providers
    provider = await repo.get_by_user_id(user_id, db)
    if provider is not None:
        return ProviderIdentity(user_id=user_id, provider_id=provider.id, is_admin=is_admin)
    return ClientIdentity(user_id=user_id, is_admin=is_admin)


async def get_current_identity(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Identity:
    """Validate the Bearer token and resolve the caller's identity.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    """
    try:
        return await resolve_identity(token, db)
    except (InvalidCredentialsError, MissingIdentityError):
        raise _CREDENTIALS_EXCEPTION from None


async def require_provider(
    identity: Identity = Depends(get_current_identity),
) -> ProviderIdentity:
    if not isinstance(identity, ProviderIdentity):
        raise ProviderRequiredError()
    return identity


async def require_admin(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    if not identity.is_admin:
        raise AdminRequiredError()
    return identity
