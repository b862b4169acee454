from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from typing import Dict, Optional

from speechhub.dependencies import get_tts_service
from speechhub.models.schemas import (
    CredentialsRequest,
    ProviderStatus,
    ProvidersResponse,
    SetActiveProviderRequest,
    SetVoiceRequest,
    SpeakRequestModel,
    SpeakResponse,
    TTSSettingsRequest,
    TTSSettingsResponse,
    UsageResponse,
    ValidateProviderResponse,
    VoiceResponse,
    VoicesResponse,
)
from speechhub.services.tts.base import NotConfiguredError, ProviderType, TTSCredentials, TTSProviderError
from speechhub.services.tts.service import TTSService
from speechhub.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/tts", tags=["tts"])

STATUS_BY_CODE: Dict[str, int] = {
    "NOT_REGISTERED": 404,
    "NOT_CONFIGURED": 409,
    "MISSING_CREDENTIALS": 401,
    "INVALID_CREDENTIALS": 401,
    "RATE_LIMITED": 429,
    "TIMEOUT": 504,
}


def _to_http_exception(error: TTSProviderError) -> HTTPException:
    status_code = STATUS_BY_CODE.get(error.code, 502)
    return HTTPException(status_code=status_code, detail=error.to_dict())


async def _provider_statuses(service: TTSService) -> ProvidersResponse:
    manager = service.manager
    active = manager.get_active_provider_type()
    providers = []
    for name in manager.get_available_providers():
        provider_type = ProviderType(name)
        providers.append(ProviderStatus(
            provider=provider_type,
            configured=await manager.is_provider_configured(provider_type),
            active=provider_type is active
        ))
    return ProvidersResponse(
        active_provider=active,
        enabled=service.enabled,
        speed=service.speed,
        providers=providers
    )


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers(service: TTSService = Depends(get_tts_service)):
    """List registered providers and which one is active."""
    return await _provider_statuses(service)


@router.put("/providers/active", response_model=ProvidersResponse)
async def set_active_provider(
    request: SetActiveProviderRequest,
    service: TTSService = Depends(get_tts_service)
):
    """Switch the active provider. A failed switch leaves the current provider active."""
    try:
        await service.set_provider(request.provider)
    except TTSProviderError as e:
        logger.warning(f"Provider switch to {request.provider.value} failed: {e.message}")
        raise _to_http_exception(e)
    return await _provider_statuses(service)


@router.put("/providers/{provider}/credentials", response_model=ProvidersResponse)
async def update_credentials(
    provider: ProviderType,
    request: CredentialsRequest,
    service: TTSService = Depends(get_tts_service)
):
    """Register a cloud provider or replace its credentials."""
    if provider is ProviderType.NATIVE:
        raise HTTPException(status_code=400, detail="The native provider takes no credentials")

    if provider is ProviderType.GOOGLE_CLOUD and not request.google_cloud_api_key:
        raise HTTPException(status_code=400, detail="google_cloud_api_key is required")
    if provider is ProviderType.AZURE and not (request.azure_api_key and request.azure_region):
        raise HTTPException(status_code=400, detail="azure_api_key and azure_region are required")

    credentials = TTSCredentials(
        google_cloud_api_key=request.google_cloud_api_key,
        azure_api_key=request.azure_api_key,
        azure_region=request.azure_region,
        azure_tier=request.azure_tier.value
    )
    service.update_credentials(provider, credentials)
    return await _provider_statuses(service)


@router.delete("/providers/{provider}", response_model=ProvidersResponse)
async def remove_provider(provider: ProviderType, service: TTSService = Depends(get_tts_service)):
    """Unregister a cloud provider. Reverts to native if it was active."""
    if provider is ProviderType.NATIVE:
        raise HTTPException(status_code=400, detail="The native provider cannot be removed")
    service.remove_provider(provider)
    return await _provider_statuses(service)


@router.post("/providers/{provider}/validate", response_model=ValidateProviderResponse)
async def validate_provider(provider: ProviderType, service: TTSService = Depends(get_tts_service)):
    """Check a provider's credentials against its backend."""
    try:
        await service.validate_provider(provider)
    except NotConfiguredError as e:
        raise _to_http_exception(e)
    except TTSProviderError as e:
        return ValidateProviderResponse(provider=provider, valid=False, code=e.code, message=e.message)
    return ValidateProviderResponse(provider=provider, valid=True)


@router.get("/voices", response_model=VoicesResponse)
async def list_voices(
    provider: Optional[ProviderType] = Query(None, description="Provider to list (active provider if omitted)"),
    service: TTSService = Depends(get_tts_service)
):
    try:
        voices = await service.list_voices(provider)
    except TTSProviderError as e:
        raise _to_http_exception(e)

    manager = service.manager
    target = provider or manager.get_active_provider_type()
    return VoicesResponse(
        provider=target,
        current_voice=manager.get_voice_for_provider(target),
        voices=[VoiceResponse(**voice.to_dict()) for voice in voices]
    )


@router.put("/voice", response_model=VoicesResponse)
async def set_voice(request: SetVoiceRequest, service: TTSService = Depends(get_tts_service)):
    """Remember a voice for a provider (the active one if none is given)."""
    service.set_voice(request.voice_id, request.provider)
    target = request.provider or service.get_provider()
    return VoicesResponse(
        provider=target,
        current_voice=service.manager.get_voice_for_provider(target),
        voices=[]
    )


@router.post("/speak", response_model=SpeakResponse, status_code=202)
async def speak(
    request: SpeakRequestModel,
    background_tasks: BackgroundTasks,
    service: TTSService = Depends(get_tts_service)
):
    """
    Queue text for speech and return immediately.

    Failures during speech are logged and fall back to the native provider.
    """
    if not service.enabled:
        raise HTTPException(status_code=409, detail="TTS is disabled")
    if not request.text.strip():
        raise HTTPException(status_code=422, detail="Text cannot be empty")

    background_tasks.add_task(service.play, request.text, request.voice, request.speed)
    return SpeakResponse(
        queued=True,
        provider=service.get_provider(),
        queue_size=service.manager.queue_size
    )


@router.post("/stop", status_code=204)
async def stop(service: TTSService = Depends(get_tts_service)):
    """Stop current speech and drop queued requests."""
    service.stop()


@router.put("/settings", response_model=TTSSettingsResponse)
async def update_settings(request: TTSSettingsRequest, service: TTSService = Depends(get_tts_service)):
    if request.enabled is not None:
        service.set_enabled(request.enabled)
    if request.speed is not None:
        service.set_speed(request.speed)
    return TTSSettingsResponse(enabled=service.enabled, speed=service.speed)


@router.get("/usage", response_model=UsageResponse)
async def get_usage(service: TTSService = Depends(get_tts_service)):
    """Current-period usage ledgers and this process's cloud TTS cost."""
    if service.cost_tracker is None:
        raise HTTPException(status_code=404, detail="Cost tracking is not enabled")
    return UsageResponse(**service.cost_tracker.get_usage_summary())
