"""
Metrics Agent - Configuration Tests
"""

import pytest

from metrics_agent.config import BatchFallbackPolicy, ReportProtocol, load_settings
from metrics_agent.main import flag_overrides, parse_args


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ADDRESS", "REPORT_INTERVAL", "POLL_INTERVAL", "KEY", "BATCH_FALLBACK", "PROTOCOL"):
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:
    """Test settings priority: env > flags > YAML > defaults."""

    def test_defaults(self):
        settings = load_settings()

        assert settings.address == "localhost:8080"
        assert settings.report_interval == 10
        assert settings.poll_interval == 2
        assert settings.batch_fallback == BatchFallbackPolicy.RETRY
        assert settings.protocol == ReportProtocol.JSON
        assert settings.signing_key is None
        assert settings.base_url == "http://localhost:8080"

    def test_yaml_file(self, tmp_path):
        config = tmp_path / "agent.yaml"
        config.write_text("address: collector:9090\nbatch_fallback: sticky\npoll_interval: 1\n")

        settings = load_settings(str(config))

        assert settings.address == "collector:9090"
        assert settings.batch_fallback == BatchFallbackPolicy.STICKY
        assert settings.poll_interval == 1

    def test_flags_beat_yaml(self, tmp_path):
        config = tmp_path / "agent.yaml"
        config.write_text("address: collector:9090\n")

        settings = load_settings(str(config), {"address": "flag:1111"})

        assert settings.address == "flag:1111"

    def test_env_beats_flags(self, monkeypatch):
        monkeypatch.setenv("ADDRESS", "env:2222")

        settings = load_settings(None, {"address": "flag:1111"})

        assert settings.address == "env:2222"

    def test_missing_config_file_uses_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path / "absent.yaml"))

        assert settings.address == "localhost:8080"

    def test_non_mapping_config_rejected(self, tmp_path):
        config = tmp_path / "agent.yaml"
        config.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            load_settings(str(config))


class TestAgentFlags:
    """Test command-line parsing."""

    def test_flags(self):
        args = parse_args(["--config", "agent.yaml", "-a", "collector:9090", "-r", "5", "-p", "1", "-k", "s"])

        assert args.config == "agent.yaml"
        assert flag_overrides(args) == {
            "address": "collector:9090",
            "report_interval": 5,
            "poll_interval": 1,
            "key": "s",
        }

    def test_unset_flags_omitted(self):
        assert flag_overrides(parse_args([])) == {}
