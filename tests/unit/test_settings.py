"""Unit tests for EngineSettings."""

from __future__ import annotations

import pytest

from archsim.settings import EngineSettings


class TestDefaults:
    def test_default_feel(self):
        settings = EngineSettings()

        assert settings.tick_interval_s == 0.1
        assert settings.autoscale_threshold == 0.7
        assert settings.error_knee == 0.85
        assert settings.error_knee_steep == 0.95
        assert settings.cascade_probability == 0.5
        assert settings.failure_dwell_s == 5.0


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"tick_interval_s": 0},
            {"max_ticks": 0},
            {"smoothing": 0.0},
            {"smoothing": 1.0},
            {"error_smoothing_up": 1.5},
            {"slow_node_probability": -0.1},
            {"cascade_probability": 1.1},
            {"p95_factor": 0.5},
            {"autoscale_factor": 1.0},
            {"error_knee": 0.96},
            {"cold_start_ticks": -1},
            {"failure_dwell_s": -1.0},
            {"tick_seconds": 0},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            EngineSettings(**overrides)

    def test_zero_probabilities_allowed(self):
        settings = EngineSettings(slow_node_probability=0.0, regional_outage_probability=0.0)
        assert settings.slow_node_probability == 0.0


class TestWithOverrides:
    def test_returns_modified_copy(self):
        base = EngineSettings()
        fast = base.with_overrides(tick_interval_s=0.05)

        assert fast.tick_interval_s == 0.05
        assert base.tick_interval_s == 0.1

    def test_unknown_name_rejected(self):
        with pytest.raises(ValueError, match="Unknown settings: bogus"):
            EngineSettings().with_overrides(bogus=1)

    def test_invalid_value_rejected(self):
        with pytest.raises(ValueError):
            EngineSettings().with_overrides(max_ticks=0)


class TestFromEnv:
    def test_unset_keeps_defaults(self, monkeypatch):
        for name in ("ARCHSIM_TICK_INTERVAL", "ARCHSIM_MAX_TICKS", "ARCHSIM_FAILURE_DWELL"):
            monkeypatch.delenv(name, raising=False)

        assert EngineSettings.from_env() == EngineSettings()

    def test_reads_variables(self, monkeypatch):
        monkeypatch.setenv("ARCHSIM_TICK_INTERVAL", "0.25")
        monkeypatch.setenv("ARCHSIM_MAX_TICKS", "42")
        monkeypatch.setenv("ARCHSIM_FAILURE_DWELL", "2")

        settings = EngineSettings.from_env()

        assert settings.tick_interval_s == 0.25
        assert settings.max_ticks == 42
        assert settings.failure_dwell_s == 2.0

    def test_bad_value_raises(self, monkeypatch):
        monkeypatch.setenv("ARCHSIM_MAX_TICKS", "many")

        with pytest.raises(ValueError):
            EngineSettings.from_env()
