"""
Unit tests for ConfigManager.

Tests YAML loading and merging, dot-notation reads, runtime overrides and
their reset.
"""

import pytest

from gigvault.core.config.config import Config
from gigvault.core.config.manager import DEFAULT_CONFIG_DIR, ConfigManager, ConfigManagerError


@pytest.fixture
def yaml_dir(tmp_path):
    """Two YAML files that overlap on one section."""
    (tmp_path / "a_economy.yaml").write_text(
        "checkin:\n  base_reward: 100\n  increment: 50\npvp:\n  attack:\n    steal_pct: 0.05\n",
        encoding="utf-8",
    )
    (tmp_path / "b_overrides.yaml").write_text(
        "checkin:\n  increment: 75\n",
        encoding="utf-8",
    )
    (tmp_path / "broken.yaml").write_text("checkin: [unclosed\n", encoding="utf-8")

    ConfigManager.initialize(config_dir=tmp_path)
    yield tmp_path
    ConfigManager.initialize(config_dir=DEFAULT_CONFIG_DIR)


class TestYamlLoading:
    """Test default loading from a config directory."""

    def test_files_merge_in_sorted_order(self, yaml_dir):
        """Later files override earlier ones key by key."""
        assert ConfigManager.get("checkin.base_reward") == 100
        assert ConfigManager.get("checkin.increment") == 75

    def test_broken_file_is_skipped(self, yaml_dir):
        """A malformed YAML file does not prevent loading the others."""
        assert ConfigManager.get("pvp.attack.steal_pct") == 0.05

    def test_missing_key_returns_default(self, yaml_dir):
        assert ConfigManager.get("rewards.ad_amount", 500) == 500
        assert ConfigManager.get("checkin.base_reward.nested", "x") == "x"

    def test_packaged_defaults_cover_economy(self):
        """The shipped YAML carries every economy section."""
        ConfigManager.initialize(config_dir=DEFAULT_CONFIG_DIR)

        assert ConfigManager.get("checkin.cap_day") == 7
        assert ConfigManager.get("rewards.ad_amount") == 500
        assert ConfigManager.get("referral.token_prefix") == "ref_"
        assert ConfigManager.get("pvp.revenge.steal_pct") == 0.08
        assert len(ConfigManager.get("catalog.items")) >= 4
        assert ConfigManager.get("farming.max_minutes") == 480
        assert len(ConfigManager.get("spin.segments")) == 5
        assert ConfigManager.get("wallet.max_pending") == 3


class TestOverrides:
    """Test runtime overrides."""

    def test_set_then_reset(self, yaml_dir):
        """Overrides win until reset_overrides() restores the YAML value."""
        ConfigManager.set("checkin.base_reward", 250, modified_by="test")
        assert ConfigManager.get("checkin.base_reward") == 250

        ConfigManager.reset_overrides()
        assert ConfigManager.get("checkin.base_reward") == 100

    def test_set_creates_intermediate_sections(self, yaml_dir):
        ConfigManager.set("admin.max_gift_amount", 10)

        assert ConfigManager.get("admin.max_gift_amount") == 10

    def test_set_through_scalar_fails(self, yaml_dir):
        """A path segment holding a scalar cannot become a mapping."""
        with pytest.raises(ConfigManagerError):
            ConfigManager.set("checkin.base_reward.deep", 1)

    def test_metrics_count_reads(self, yaml_dir):
        before = ConfigManager.get_metrics()["gets"]

        ConfigManager.get("checkin.increment")

        assert ConfigManager.get_metrics()["gets"] == before + 1


class TestConfigSummary:
    """Test the environment-backed static Config summary."""

    def test_summary_reports_load_sources(self, monkeypatch):
        """Values read from the environment are counted in the summary."""
        # Arrange
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://gig:secret@db:5432/gigvault")
        monkeypatch.setenv("DATABASE_POOL_SIZE", "7")
        Config.reset()

        # Act
        Config.validate()
        summary = Config.get_config_summary()

        # Assert
        assert summary["database_pool_size"] == 7
        assert summary["database_url_set"] is True
        assert "secret" not in str(summary)
        assert summary["load"]["from_environment"] >= 2

        # Cleanup
        monkeypatch.undo()
        Config.reset()
        Config.validate()
