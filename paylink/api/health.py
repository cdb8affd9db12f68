"""Liveness endpoint."""

from fastapi import APIRouter, Depends

from paylink.api.dependencies import get_registry
from paylink.providers.registry import ProviderRegistry

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(registry: ProviderRegistry = Depends(get_registry)):
    return {"status": "ok", "providers": registry.names()}
