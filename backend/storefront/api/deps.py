from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storefront.errors import Unauthorized
from storefront.services.auth_service import (
    AuthProvider,
    Caller,
    JWTAuthProvider,
    require_admin,
)

bearer = HTTPBearer(auto_error=False)


def get_auth_provider() -> AuthProvider:
    return JWTAuthProvider()


def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    provider: AuthProvider = Depends(get_auth_provider),
) -> Caller:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Authorization header is required")
    return provider.verify(credentials.credentials)


def get_admin(caller: Caller = Depends(get_caller)) -> Caller:
    require_admin(caller)
    return caller
