"""
Unit tests for TTSCostTracker.
"""
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

from speechhub.services.cost_tracker import (
    AZURE_USAGE_KEY,
    GOOGLE_USAGE_KEY,
    InMemoryUsageStore,
    TTSCostTracker,
)
from speechhub.services.tts_cost import (
    AzureTier,
    AzureTTSUsage,
    GoogleCloudModel,
    GoogleCloudTTSUsage,
)


class TestGoogleTracking:

    @pytest.mark.unit
    def test_first_use_creates_ledger(self, cost_tracker, usage_store):
        details = cost_tracker.track_google("en-US-Wavenet-D", 120)

        ledger = usage_store.get(GOOGLE_USAGE_KEY)
        assert ledger.period == "2025-03"
        assert ledger.characters_for(GoogleCloudModel.WAVENET) == 120
        assert details.characters_free == 120
        assert details.cost == Decimal("0")

    @pytest.mark.unit
    def test_prior_usage_reduces_free_allowance(self, usage_store, fixed_today):
        usage_store.set(GOOGLE_USAGE_KEY, GoogleCloudTTSUsage(
            period="2025-03",
            usage={GoogleCloudModel.WAVENET: 3_000_000}
        ))
        tracker = TTSCostTracker(store=usage_store, f0_warning_ratio=0.9, clock=lambda: fixed_today)
        callback = MagicMock()

        details = tracker.track_google("en-US-Wavenet-D", 2_000_000, callback)

        assert details.characters_paid == 1_000_000
        assert details.cost == Decimal("4")
        callback.assert_called_once_with(details)
        assert usage_store.get(GOOGLE_USAGE_KEY).characters_for(GoogleCloudModel.WAVENET) == 5_000_000

    @pytest.mark.unit
    def test_stale_ledger_is_not_counted(self, usage_store, fixed_today):
        usage_store.set(GOOGLE_USAGE_KEY, GoogleCloudTTSUsage(
            period="2025-02",
            usage={GoogleCloudModel.STUDIO: 5_000_000}
        ))
        tracker = TTSCostTracker(store=usage_store, f0_warning_ratio=0.9, clock=lambda: fixed_today)

        details = tracker.track_google("en-US-Studio-O", 100)

        assert details.cost == Decimal("0")
        assert usage_store.get(GOOGLE_USAGE_KEY).period == "2025-03"
        assert usage_store.get(GOOGLE_USAGE_KEY).characters_for(GoogleCloudModel.STUDIO) == 100

    @pytest.mark.unit
    def test_callback_not_called_when_free(self, cost_tracker):
        callback = MagicMock()
        cost_tracker.track_google("en-US-Standard-A", 10, callback)
        callback.assert_not_called()

    @pytest.mark.unit
    def test_ledger_stored_as_dict_is_loaded(self, fixed_today):
        store = InMemoryUsageStore({
            GOOGLE_USAGE_KEY: {"period": "2025-03", "usage": {"neural2": 999_990}}
        })
        tracker = TTSCostTracker(store=store, f0_warning_ratio=0.9, clock=lambda: fixed_today)

        details = tracker.track_google("en-US-Neural2-A", 20)

        assert details.characters_free == 10
        assert details.characters_paid == 10

    @pytest.mark.unit
    def test_store_failure_is_logged_not_raised(self, fixed_today):
        store = MagicMock()
        store.get.side_effect = RuntimeError("disk full")
        tracker = TTSCostTracker(store=store, f0_warning_ratio=0.9, clock=lambda: fixed_today)

        with patch("speechhub.services.cost_tracker.logger") as mock_logger:
            assert tracker.track_google("en-US-Wavenet-D", 10) is None
        assert "disk full" in mock_logger.error.call_args[0][0]


class TestAzureTracking:

    @pytest.mark.unit
    def test_s0_bills_and_notifies(self, cost_tracker, usage_store):
        callback = MagicMock()

        details = cost_tracker.track_azure(AzureTier.S0, "en-US-AriaNeural", 1000, callback)

        assert details.cost == Decimal("0.015")
        callback.assert_called_once_with(details)
        assert usage_store.get(AZURE_USAGE_KEY).characters_used == 1000

    @pytest.mark.unit
    def test_f0_never_notifies(self, cost_tracker):
        callback = MagicMock()
        details = cost_tracker.track_azure(AzureTier.F0, "en-US-AriaNeural", 1000, callback)

        assert details.cost == Decimal("0")
        callback.assert_not_called()

    @pytest.mark.unit
    def test_tier_change_resets_ledger(self, usage_store, fixed_today):
        usage_store.set(AZURE_USAGE_KEY, AzureTTSUsage(period="2025-03", tier=AzureTier.F0, characters_used=400_000))
        tracker = TTSCostTracker(store=usage_store, f0_warning_ratio=0.9, clock=lambda: fixed_today)

        tracker.track_azure(AzureTier.S0, "en-US-AriaNeural", 10)

        ledger = usage_store.get(AZURE_USAGE_KEY)
        assert ledger.tier is AzureTier.S0
        assert ledger.characters_used == 10

    @pytest.mark.unit
    def test_f0_warning_near_cap(self, usage_store, fixed_today):
        usage_store.set(AZURE_USAGE_KEY, AzureTTSUsage(period="2025-03", tier=AzureTier.F0, characters_used=449_000))
        tracker = TTSCostTracker(store=usage_store, f0_warning_ratio=0.9, clock=lambda: fixed_today)

        with patch("speechhub.services.cost_tracker.logger") as mock_logger:
            tracker.track_azure(AzureTier.F0, "en-US-AriaNeural", 2000)

        assert "nearly exhausted" in mock_logger.warning.call_args[0][0]
        mock_logger.error.assert_not_called()

    @pytest.mark.unit
    def test_f0_cap_reached_logs_error(self, usage_store, fixed_today):
        usage_store.set(AZURE_USAGE_KEY, AzureTTSUsage(period="2025-03", tier=AzureTier.F0, characters_used=499_990))
        tracker = TTSCostTracker(store=usage_store, f0_warning_ratio=0.9, clock=lambda: fixed_today)

        with patch("speechhub.services.cost_tracker.logger") as mock_logger:
            tracker.track_azure(AzureTier.F0, "en-US-AriaNeural", 20)

        assert "exhausted" in mock_logger.error.call_args[0][0]


class TestUsageSummary:

    @pytest.mark.unit
    def test_empty_summary(self, cost_tracker):
        summary = cost_tracker.get_usage_summary()

        assert summary["google_cloud"] is None
        assert summary["azure"] is None
        assert summary["session_costs"] == {"google-cloud": "0", "azure": "0"}

    @pytest.mark.unit
    def test_summary_reports_ledgers_and_session_cost(self, cost_tracker):
        cost_tracker.track_azure(AzureTier.S0, "en-US-AriaNeural", 1000)
        cost_tracker.track_google("en-US-Wavenet-D", 10)

        summary = cost_tracker.get_usage_summary()

        assert summary["azure"]["characters_used"] == 1000
        assert summary["google_cloud"]["usage"]["wavenet"] == 10
        assert Decimal(summary["session_costs"]["azure"]) == Decimal("0.015")

    @pytest.mark.unit
    def test_summary_rolls_stale_ledger_forward(self, usage_store):
        usage_store.set(AZURE_USAGE_KEY, AzureTTSUsage(period="2025-02", tier=AzureTier.F0, characters_used=300))
        tracker = TTSCostTracker(store=usage_store, f0_warning_ratio=0.9, clock=lambda: date(2025, 3, 1))

        azure = tracker.get_usage_summary()["azure"]

        assert azure["period"] == "2025-03"
        assert azure["characters_used"] == 0
        assert azure["characters_remaining"] == 500_000
