"""
Chat API routes.

GET describes the providers and defaults; POST relays a chat request to a
provider, either streamed as relay lines or as a single JSON response.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from convospace.api.dependencies import get_chat_service
from convospace.api.schemas import ChatCompletionRequest
from convospace.chat.service import ChatRequest, ChatService, provider_error_status
from convospace.config import settings
from convospace.exceptions import ChatRequestError, ProviderError
from convospace.providers import get_registry
from convospace.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def get_chat_config(registry: ProviderRegistry = Depends(get_registry)) -> dict:
    """Available providers, defaults and feature flags."""
    return {
        "success": True,
        "data": {
            "providers": [spec.to_public_dict() for spec in registry.available()],
            "defaultProvider": settings.default_llm_provider,
            "defaultModel": settings.default_model,
            "defaultTemperature": settings.default_temperature,
            "defaultMaxTokens": settings.default_max_tokens,
            "features": {
                "voiceEnabled": settings.enable_voice_features,
                "imageGeneration": settings.enable_image_generation,
                "chatHistory": settings.enable_chat_history,
                "codeExecution": settings.enable_code_execution,
            },
        },
    }


@router.post("")
def chat(
    body: ChatCompletionRequest,
    service: ChatService = Depends(get_chat_service),
):
    """
    Relay a chat request.

    Streams ``text/plain`` relay lines when ``stream`` is set and the
    provider supports it; otherwise returns the full response with any
    parsed command block.
    """
    request = ChatRequest(
        messages=[m.model_dump() for m in body.messages or []],
        provider=body.provider or "",
        model=body.model or "",
        temperature=body.temperature,
        max_tokens=body.max_tokens,
        stream=body.stream,
        api_keys=body.api_keys,
    )

    try:
        spec = service.validate(request)
    except ChatRequestError as e:
        raise HTTPException(status_code=400, detail={"error": str(e), **e.details})

    try:
        if request.stream and spec.supports_streaming:
            relay = service.stream(request)
            return StreamingResponse(
                iter(relay),
                media_type="text/plain; charset=utf-8",
                headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
            )

        result = service.generate(request)
    except ProviderError as e:
        logger.error(f"Chat request to {request.provider} failed: {e}")
        status_code, content = provider_error_status(e)
        return JSONResponse(content=content, status_code=status_code)

    return {
        "success": True,
        **result.to_dict(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
