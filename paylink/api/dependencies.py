"""
Shared API dependencies: authentication scopes and app-scoped services.

Callers authenticate with a bearer token from ``settings.api_tokens``; each
token maps to an owner id and a set of scopes. With no tokens configured
authentication is disabled, which is how local development runs.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from paylink.audit.notifier import TransactionNotifier
from paylink.config import settings
from paylink.providers.registry import ProviderRegistry

http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="API token issued to the merchant backend",
    auto_error=False,
)


@dataclass(frozen=True)
class Principal:
    owner_id: Optional[str]
    scopes: Optional[frozenset[str]]  # None when authentication is disabled

    def allows(self, scope: str) -> bool:
        return self.scopes is None or scope in self.scopes


async def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Principal:
    if not settings.api_tokens:
        return Principal(owner_id=None, scopes=None)

    token = settings.api_tokens.get(credentials.credentials) if credentials else None
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid API token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Principal(owner_id=token.owner_id, scopes=frozenset(token.scopes))


def require_scope(scope: str):
    """Dependency factory rejecting principals without ``scope``."""

    async def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if not principal.allows(scope):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Token lacks the '{scope}' scope",
            )
        return principal

    return dependency


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_notifier(request: Request) -> TransactionNotifier:
    return request.app.state.notifier
