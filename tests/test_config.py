"""
Tests for engine settings.
"""
import pytest

from arlog_engine.config.settings import EngineConfig


@pytest.fixture(autouse=True)
def no_config_file(monkeypatch, tmp_path):
    """Point the YAML source at a file that does not exist."""
    monkeypatch.setenv("ARLOG_CONFIG_FILE", str(tmp_path / "missing.yaml"))


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()

        assert config.min_gap_ms == 1000.0
        assert config.gap_warning_ms == 5000.0
        assert config.gap_critical_ms == 60000.0
        assert config.sigma_threshold == 2.0
        assert config.update_baseline is True
        assert config.validate_thresholds() == (True, "Thresholds valid")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ARLOG_MIN_GAP_MS", "2500")
        monkeypatch.setenv("ARLOG_UPDATE_BASELINE", "false")

        config = EngineConfig()

        assert config.min_gap_ms == 2500.0
        assert config.update_baseline is False

    def test_yaml_file(self, monkeypatch, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("sigma_threshold: 3.5\nfilter_top_n: 20\n")
        monkeypatch.setenv("ARLOG_CONFIG_FILE", str(path))

        config = EngineConfig()

        assert config.sigma_threshold == 3.5
        assert config.filter_top_n == 20

    def test_env_beats_yaml(self, monkeypatch, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("min_gap_ms: 300\n")
        monkeypatch.setenv("ARLOG_CONFIG_FILE", str(path))
        monkeypatch.setenv("ARLOG_MIN_GAP_MS", "700")

        assert EngineConfig().min_gap_ms == 700.0

    def test_empty_yaml(self, monkeypatch, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        monkeypatch.setenv("ARLOG_CONFIG_FILE", str(path))

        assert EngineConfig().min_gap_ms == 1000.0

    def test_negative_gap_floor_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig(min_gap_ms=-1)

    @pytest.mark.parametrize("overrides", [
        {"gap_warning_ms": 60000.0, "gap_critical_ms": 60000.0},
        {"sigma_medium": 3.5, "sigma_high": 3.0},
        {"max_reported_sigma": 3.0},
    ])
    def test_invalid_bands(self, overrides):
        valid, message = EngineConfig(**overrides).validate_thresholds()
        assert not valid
        assert message
