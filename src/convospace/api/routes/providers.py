"""Provider discovery route."""

from fastapi import APIRouter, Depends

from convospace.config import settings
from convospace.providers import get_registry
from convospace.providers.registry import ProviderRegistry

router = APIRouter()


@router.get("")
def list_providers(registry: ProviderRegistry = Depends(get_registry)) -> dict:
    """Providers usable with server-side keys, with their models."""
    return {
        "success": True,
        "data": {
            "providers": [spec.to_public_dict() for spec in registry.available()],
            "defaultProvider": settings.default_llm_provider,
            "defaultModel": settings.default_model,
        },
    }
