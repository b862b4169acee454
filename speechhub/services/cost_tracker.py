"""
TTS Cost Tracking Service

Keeps the monthly usage ledgers for the cloud TTS providers, prices each
synthesis call, and reports the cost back to the caller.
"""
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Dict, Any, Optional, Callable

from speechhub.config import get_settings
from speechhub.exceptions import ConfigurationError
from speechhub.services.tts_cost import (
    AzureTier,
    AzureTTSUsage,
    GoogleCloudTTSUsage,
    TTSCostDetails,
    AZURE_F0_FREE_LIMIT,
    calculate_azure_cost,
    calculate_google_cost,
    detect_azure_voice_type,
    detect_google_model,
    refresh_azure_usage,
    refresh_google_usage,
    update_azure_usage,
    update_google_usage,
)
from speechhub.utils.logger import get_logger

logger = get_logger(__name__)

GOOGLE_USAGE_KEY = "google_cloud_tts_usage"
AZURE_USAGE_KEY = "azure_tts_usage"


class UsageStore(ABC):
    """Key-value persistence for usage ledgers."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass


class InMemoryUsageStore(UsageStore):
    """Process-local store. Ledgers are lost on restart."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class TTSCostTracker:
    """
    Service for tracking cloud TTS usage and cost.

    Tracking never fails the speech operation that triggered it: errors are
    logged and the call returns None.
    """

    def __init__(
        self,
        store: Optional[UsageStore] = None,
        f0_warning_ratio: Optional[float] = None,
        clock: Callable[[], date] = date.today
    ):
        self.store = store or InMemoryUsageStore()
        self.f0_warning_ratio = (
            f0_warning_ratio if f0_warning_ratio is not None
            else get_settings().AZURE_F0_WARNING_RATIO
        )
        if not 0.0 < self.f0_warning_ratio <= 1.0:
            raise ConfigurationError(
                f"F0 warning ratio must be in (0, 1], got {self.f0_warning_ratio}",
                context={"f0_warning_ratio": self.f0_warning_ratio}
            )
        self.clock = clock

        # Costs incurred by this process, per provider
        self.session_costs: Dict[str, Decimal] = {
            "google-cloud": Decimal("0"),
            "azure": Decimal("0")
        }

    def track_google(
        self,
        voice_name: Optional[str],
        characters_used: int,
        on_cost_incurred: Optional[Callable[[TTSCostDetails], None]] = None
    ) -> Optional[TTSCostDetails]:
        """
        Record a Google Cloud synthesis and price it.

        Args:
            voice_name: Voice used, classified into a pricing model by name
            characters_used: Characters sent for synthesis
            on_cost_incurred: Called with the breakdown when the call costs money

        Returns:
            TTSCostDetails, or None if tracking failed
        """
        try:
            today = self.clock()
            model = detect_google_model(voice_name)
            ledger = refresh_google_usage(self._load_google_usage(), today)

            details = calculate_google_cost(model, characters_used, ledger.characters_for(model))
            updated = update_google_usage(ledger, model, characters_used, today)
            self.store.set(GOOGLE_USAGE_KEY, updated)

            self._record(details)
            logger.info(
                f"Google Cloud TTS usage: {characters_used} chars ({model.value}), "
                f"{updated.characters_for(model)} this period, "
                f"{details.characters_free} free, {details.characters_paid} paid, ${details.cost}"
            )
            self._notify(details, on_cost_incurred)
            return details

        except Exception as e:
            logger.error(f"Error tracking Google Cloud TTS cost: {e}")
            return None

    def track_azure(
        self,
        tier: AzureTier,
        voice_name: Optional[str],
        characters_used: int,
        on_cost_incurred: Optional[Callable[[TTSCostDetails], None]] = None
    ) -> Optional[TTSCostDetails]:
        """Record an Azure synthesis and price it for the given tier."""
        try:
            today = self.clock()
            tier = AzureTier(tier)
            voice_type = detect_azure_voice_type(voice_name)
            ledger = refresh_azure_usage(self._load_azure_usage(), tier, today)

            details = calculate_azure_cost(tier, voice_type, characters_used, ledger.characters_used)
            updated = update_azure_usage(ledger, tier, characters_used, today)
            self.store.set(AZURE_USAGE_KEY, updated)

            self._record(details)
            logger.info(
                f"Azure TTS usage: {characters_used} chars ({tier.value}, {voice_type.value}), "
                f"{updated.characters_used} this period, ${details.cost}"
            )
            if tier is AzureTier.F0:
                self._check_f0_threshold(updated)
            self._notify(details, on_cost_incurred)
            return details

        except Exception as e:
            logger.error(f"Error tracking Azure TTS cost: {e}")
            return None

    def get_usage_summary(self) -> Dict[str, Any]:
        """Current-period ledgers plus this process's accumulated cost."""
        today = self.clock()
        google = self._load_google_usage()
        azure = self._load_azure_usage()

        summary: Dict[str, Any] = {
            "google_cloud": None,
            "azure": None,
            "session_costs": {provider: str(cost) for provider, cost in self.session_costs.items()}
        }
        if google is not None:
            summary["google_cloud"] = refresh_google_usage(google, today).to_dict()
        if azure is not None:
            current = refresh_azure_usage(azure, azure.tier, today)
            summary["azure"] = current.to_dict()
            if current.tier is AzureTier.F0:
                summary["azure"]["characters_remaining"] = max(0, AZURE_F0_FREE_LIMIT - current.characters_used)
        return summary

    def _load_google_usage(self) -> Optional[GoogleCloudTTSUsage]:
        stored = self.store.get(GOOGLE_USAGE_KEY)
        if isinstance(stored, dict):
            return GoogleCloudTTSUsage.from_dict(stored)
        return stored

    def _load_azure_usage(self) -> Optional[AzureTTSUsage]:
        stored = self.store.get(AZURE_USAGE_KEY)
        if isinstance(stored, dict):
            return AzureTTSUsage.from_dict(stored)
        return stored

    def _record(self, details: TTSCostDetails) -> None:
        self.session_costs[details.provider] = self.session_costs.get(details.provider, Decimal("0")) + details.cost

    def _check_f0_threshold(self, ledger: AzureTTSUsage) -> None:
        if ledger.characters_used >= AZURE_F0_FREE_LIMIT:
            logger.error(
                f"Azure F0 free tier exhausted: {ledger.characters_used}/{AZURE_F0_FREE_LIMIT} chars, "
                f"synthesis will be refused until next month"
            )
        elif ledger.characters_used >= AZURE_F0_FREE_LIMIT * self.f0_warning_ratio:
            logger.warning(
                f"Azure F0 free tier nearly exhausted: {ledger.characters_used}/{AZURE_F0_FREE_LIMIT} chars"
            )

    def _notify(
        self,
        details: TTSCostDetails,
        on_cost_incurred: Optional[Callable[[TTSCostDetails], None]]
    ) -> None:
        if on_cost_incurred is not None and details.cost > 0:
            on_cost_incurred(details)
