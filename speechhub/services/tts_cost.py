"""
TTS Cost Calculator

Pure functions that price synthesized characters against a monthly free
allowance, and that roll the monthly usage ledgers forward.

Google Cloud ledgers keep one counter per voice model. Azure ledgers keep a
single counter for the pricing tier; switching tier resets the Azure ledger
while Google ledgers only reset when the calendar month changes.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple, Union


class GoogleCloudModel(str, Enum):
    STANDARD = "standard"
    WAVENET = "wavenet"
    NEURAL2 = "neural2"
    POLYGLOT = "polyglot"
    STUDIO = "studio"
    CHIRP3_HD = "chirp3-hd"
    INSTANT_CUSTOM = "instant-custom"


class AzureTier(str, Enum):
    F0 = "F0"
    S0 = "S0"


class AzureVoiceType(str, Enum):
    NEURAL = "neural"
    NEURAL_HD = "neural-hd"
    CUSTOM = "custom"


# USD per character
GOOGLE_PRICING: Dict[GoogleCloudModel, Decimal] = {
    GoogleCloudModel.STANDARD: Decimal("0.000004"),
    GoogleCloudModel.WAVENET: Decimal("0.000004"),
    GoogleCloudModel.NEURAL2: Decimal("0.000016"),
    GoogleCloudModel.POLYGLOT: Decimal("0.000016"),
    GoogleCloudModel.STUDIO: Decimal("0.00016"),
    GoogleCloudModel.CHIRP3_HD: Decimal("0.00003"),
    GoogleCloudModel.INSTANT_CUSTOM: Decimal("0.00006"),
}

# Characters per calendar month
GOOGLE_FREE_TIER: Dict[GoogleCloudModel, int] = {
    GoogleCloudModel.STANDARD: 4_000_000,
    GoogleCloudModel.WAVENET: 4_000_000,
    GoogleCloudModel.NEURAL2: 1_000_000,
    GoogleCloudModel.POLYGLOT: 1_000_000,
    GoogleCloudModel.STUDIO: 1_000_000,
    GoogleCloudModel.CHIRP3_HD: 1_000_000,
    GoogleCloudModel.INSTANT_CUSTOM: 0,
}

AZURE_S0_PRICING: Dict[AzureVoiceType, Decimal] = {
    AzureVoiceType.NEURAL: Decimal("0.000015"),
    AzureVoiceType.NEURAL_HD: Decimal("0.00003"),
    AzureVoiceType.CUSTOM: Decimal("0.000024"),
}

# F0 stops serving at the cap instead of billing overage
AZURE_F0_FREE_LIMIT = 500_000

# Checked in order, most specific first
GOOGLE_MODEL_MARKERS: List[Tuple[Tuple[str, ...], GoogleCloudModel]] = [
    (("chirp3-hd", "chirp3hd"), GoogleCloudModel.CHIRP3_HD),
    (("wavenet",), GoogleCloudModel.WAVENET),
    (("studio",), GoogleCloudModel.STUDIO),
    (("neural2",), GoogleCloudModel.NEURAL2),
    (("polyglot",), GoogleCloudModel.POLYGLOT),
    (("custom",), GoogleCloudModel.INSTANT_CUSTOM),
]

AZURE_VOICE_TYPE_MARKERS: List[Tuple[Tuple[str, ...], AzureVoiceType]] = [
    (("hd", "multilingual"), AzureVoiceType.NEURAL_HD),
    (("custom",), AzureVoiceType.CUSTOM),
]


def current_period(today: Optional[date] = None) -> str:
    """Billing period key ("YYYY-MM") for the given day, local calendar."""
    today = today or date.today()
    return f"{today.year:04d}-{today.month:02d}"


def _zeroed_google_usage() -> Dict[GoogleCloudModel, int]:
    return {model: 0 for model in GoogleCloudModel}


def _require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


@dataclass(frozen=True)
class GoogleCloudTTSUsage:
    """Google Cloud usage for one billing period, one counter per model."""
    period: str
    usage: Dict[GoogleCloudModel, int] = field(default_factory=_zeroed_google_usage)

    @classmethod
    def initialize(cls, today: Optional[date] = None) -> "GoogleCloudTTSUsage":
        return cls(period=current_period(today))

    def characters_for(self, model: GoogleCloudModel) -> int:
        return self.usage.get(model, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "usage": {model.value: count for model, count in self.usage.items()}
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GoogleCloudTTSUsage":
        usage = _zeroed_google_usage()
        for key, count in (data.get("usage") or {}).items():
            usage[GoogleCloudModel(key)] = int(count)
        return cls(period=data["period"], usage=usage)


@dataclass(frozen=True)
class AzureTTSUsage:
    """Azure usage for one billing period and pricing tier."""
    period: str
    tier: AzureTier
    characters_used: int = 0

    @classmethod
    def initialize(cls, tier: AzureTier, today: Optional[date] = None) -> "AzureTTSUsage":
        return cls(period=current_period(today), tier=AzureTier(tier))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "tier": self.tier.value,
            "characters_used": self.characters_used
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AzureTTSUsage":
        return cls(
            period=data["period"],
            tier=AzureTier(data["tier"]),
            characters_used=int(data.get("characters_used", 0))
        )


@dataclass(frozen=True)
class TTSCostDetails:
    """Cost breakdown for one synthesis call."""
    provider: str
    classification: str
    characters_used: int
    characters_free: int
    characters_paid: int
    cost: Decimal
    tier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "classification": self.classification,
            "tier": self.tier,
            "characters_used": self.characters_used,
            "characters_free": self.characters_free,
            "characters_paid": self.characters_paid,
            "cost": str(self.cost)
        }


def calculate_google_cost(
    model: GoogleCloudModel,
    characters_used: int,
    current_usage: int
) -> TTSCostDetails:
    """
    Price Google Cloud characters against the model's monthly free allowance.

    Args:
        model: Voice model bucket
        characters_used: Characters in this request
        current_usage: Characters already used this period for the model

    Returns:
        TTSCostDetails: The free/paid split and cost in USD

    Raises:
        ValueError: If either count is negative
    """
    _require_non_negative("characters_used", characters_used)
    _require_non_negative("current_usage", current_usage)
    model = GoogleCloudModel(model)

    remaining_free = max(0, GOOGLE_FREE_TIER[model] - current_usage)
    characters_free = min(characters_used, remaining_free)
    characters_paid = characters_used - characters_free

    return TTSCostDetails(
        provider="google-cloud",
        classification=model.value,
        characters_used=characters_used,
        characters_free=characters_free,
        characters_paid=characters_paid,
        cost=characters_paid * GOOGLE_PRICING[model]
    )


def calculate_azure_cost(
    tier: AzureTier,
    voice_type: AzureVoiceType,
    characters_used: int,
    current_usage: int
) -> TTSCostDetails:
    """
    Price Azure characters for the given tier.

    F0 never bills: characters beyond the cap count as neither free nor paid.
    S0 has no free allowance and bills every character by voice type.
    """
    _require_non_negative("characters_used", characters_used)
    _require_non_negative("current_usage", current_usage)
    tier = AzureTier(tier)
    voice_type = AzureVoiceType(voice_type)

    if tier is AzureTier.F0:
        remaining_free = max(0, AZURE_F0_FREE_LIMIT - current_usage)
        return TTSCostDetails(
            provider="azure",
            classification=voice_type.value,
            tier=tier.value,
            characters_used=characters_used,
            characters_free=min(characters_used, remaining_free),
            characters_paid=0,
            cost=Decimal("0")
        )

    return TTSCostDetails(
        provider="azure",
        classification=voice_type.value,
        tier=tier.value,
        characters_used=characters_used,
        characters_free=0,
        characters_paid=characters_used,
        cost=characters_used * AZURE_S0_PRICING[voice_type]
    )


def calculate_cost(
    classification: Union[GoogleCloudModel, AzureVoiceType],
    characters_used: int,
    current_usage: int,
    tier: AzureTier = AzureTier.S0
) -> TTSCostDetails:
    """Price characters for either vendor, dispatching on the classification type."""
    if isinstance(classification, GoogleCloudModel):
        return calculate_google_cost(classification, characters_used, current_usage)
    if isinstance(classification, AzureVoiceType):
        return calculate_azure_cost(tier, classification, characters_used, current_usage)
    raise ValueError(f"Unknown pricing classification: {classification!r}")


def should_reset_google_usage(
    ledger: Optional[GoogleCloudTTSUsage],
    today: Optional[date] = None
) -> bool:
    return ledger is None or ledger.period != current_period(today)


def should_reset_azure_usage(
    ledger: Optional[AzureTTSUsage],
    tier: Optional[AzureTier] = None,
    today: Optional[date] = None
) -> bool:
    if ledger is None or ledger.period != current_period(today):
        return True
    return tier is not None and ledger.tier != AzureTier(tier)


def refresh_google_usage(
    ledger: Optional[GoogleCloudTTSUsage],
    today: Optional[date] = None
) -> GoogleCloudTTSUsage:
    """Return the ledger for the current period, zeroed if the stored one is stale."""
    if should_reset_google_usage(ledger, today):
        return GoogleCloudTTSUsage.initialize(today)
    return ledger


def refresh_azure_usage(
    ledger: Optional[AzureTTSUsage],
    tier: AzureTier,
    today: Optional[date] = None
) -> AzureTTSUsage:
    """Return the ledger for the current period and tier, zeroed if stale or re-tiered."""
    if should_reset_azure_usage(ledger, tier, today):
        return AzureTTSUsage.initialize(tier, today)
    return ledger


def update_google_usage(
    ledger: Optional[GoogleCloudTTSUsage],
    model: GoogleCloudModel,
    characters_used: int,
    today: Optional[date] = None
) -> GoogleCloudTTSUsage:
    """
    Add characters to the model's counter and return the new ledger.

    A missing or prior-period ledger is replaced by a zeroed one first; the
    input ledger is never modified.
    """
    _require_non_negative("characters_used", characters_used)
    model = GoogleCloudModel(model)
    base = refresh_google_usage(ledger, today)

    usage = dict(base.usage)
    usage[model] = usage.get(model, 0) + characters_used
    return GoogleCloudTTSUsage(period=base.period, usage=usage)


def update_azure_usage(
    ledger: Optional[AzureTTSUsage],
    tier: AzureTier,
    characters_used: int,
    today: Optional[date] = None
) -> AzureTTSUsage:
    """
    Add characters to the Azure counter and return the new ledger.

    Resets when the period is stale or when the ledger was kept for another tier.
    """
    _require_non_negative("characters_used", characters_used)
    tier = AzureTier(tier)
    base = refresh_azure_usage(ledger, tier, today)

    return AzureTTSUsage(
        period=base.period,
        tier=tier,
        characters_used=base.characters_used + characters_used
    )


def detect_google_model(voice_name: Optional[str]) -> GoogleCloudModel:
    """
    Classify a Google Cloud voice name into its pricing bucket.

    Example: "en-US-Chirp3-HD-Achernar" -> CHIRP3_HD. Unknown names price as STANDARD.
    """
    lowered = (voice_name or "").lower()
    for markers, model in GOOGLE_MODEL_MARKERS:
        if any(marker in lowered for marker in markers):
            return model
    return GoogleCloudModel.STANDARD


def detect_azure_voice_type(voice_name: Optional[str]) -> AzureVoiceType:
    lowered = (voice_name or "").lower()
    for markers, voice_type in AZURE_VOICE_TYPE_MARKERS:
        if any(marker in lowered for marker in markers):
            return voice_type
    return AzureVoiceType.NEURAL
