from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any

from speechhub.services.tts.base import ProviderType, VoiceGender
from speechhub.services.tts_cost import AzureTier


class ProviderStatus(BaseModel):
    provider: ProviderType
    configured: bool
    active: bool


class ProvidersResponse(BaseModel):
    active_provider: ProviderType
    enabled: bool
    speed: float
    providers: List[ProviderStatus]


class SetActiveProviderRequest(BaseModel):
    provider: ProviderType = Field(..., description="Provider to make active")


class CredentialsRequest(BaseModel):
    google_cloud_api_key: Optional[str] = Field(None, min_length=1, description="Google Cloud API key")
    azure_api_key: Optional[str] = Field(None, min_length=1, description="Azure Speech subscription key")
    azure_region: Optional[str] = Field(None, min_length=1, description="Azure region, e.g. eastus")
    azure_tier: AzureTier = Field(AzureTier.S0, description="Azure pricing tier")


class VoiceResponse(BaseModel):
    id: str
    name: str
    language: str
    gender: Optional[VoiceGender] = None
    provider: ProviderType


class VoicesResponse(BaseModel):
    provider: ProviderType
    current_voice: Optional[str] = None
    voices: List[VoiceResponse]


class SetVoiceRequest(BaseModel):
    voice_id: str = Field(..., min_length=1, description="Provider-specific voice id")
    provider: Optional[ProviderType] = Field(None, description="Provider the voice belongs to (active provider if omitted)")


class SpeakRequestModel(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000, description="Text to speak")
    voice: Optional[str] = Field(None, description="Voice override for this request")
    speed: Optional[float] = Field(None, ge=0.1, le=2.0, description="Speaking rate multiplier")


class SpeakResponse(BaseModel):
    queued: bool
    provider: ProviderType
    queue_size: int


class ValidateProviderResponse(BaseModel):
    provider: ProviderType
    valid: bool
    code: Optional[str] = None
    message: Optional[str] = None


class TTSSettingsRequest(BaseModel):
    enabled: Optional[bool] = None
    speed: Optional[float] = Field(None, ge=0.1, le=2.0)


class TTSSettingsResponse(BaseModel):
    enabled: bool
    speed: float


class UsageResponse(BaseModel):
    google_cloud: Optional[Dict[str, Any]] = None
    azure: Optional[Dict[str, Any]] = None
    session_costs: Dict[str, str]
