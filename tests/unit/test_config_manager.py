"""
Unit Tests for Configuration
============================

Test Coverage
-------------
- Config: environment parsing, bounds checking, boolean parsing
- ConfigManager: YAML loading and deep merge, dot-path reads, overrides,
  lazy bootstrap, malformed files

Testing Strategy
----------------
- Environment changes are scoped with ``patch.dict`` and Config is reloaded
  afterwards so later tests see the original values
"""

import os
from unittest.mock import patch

import pytest

from valor.core.config.config import Config, Environment
from valor.core.config.manager import ConfigInitializationError, ConfigManager


def load_with_env(**env: str) -> None:
    with patch.dict(os.environ, env):
        Config.load()


@pytest.fixture
def restore_config():
    yield
    Config.load()


# ============================================================================
# STATIC CONFIG
# ============================================================================


@pytest.mark.unit
class TestConfig:
    def test_unknown_environment_falls_back_to_development(self):
        assert Environment.from_string("QA") is Environment.DEVELOPMENT
        assert Environment.from_string("Production") is Environment.PRODUCTION

    def test_testing_environment(self, restore_config):
        load_with_env(ENVIRONMENT="testing")

        assert Config.is_testing()
        assert not Config.is_production()

    @pytest.mark.parametrize("raw", ["0", "abc", "500"])
    def test_pool_size_out_of_bounds_uses_default(self, restore_config, raw):
        load_with_env(DATABASE_POOL_SIZE=raw)

        assert Config.DATABASE_POOL_SIZE == 20

    @pytest.mark.parametrize("raw, expected", [("yes", True), ("OFF", False), ("maybe", False)])
    def test_redis_enabled_parsing(self, restore_config, raw, expected):
        load_with_env(REDIS_ENABLED=raw)

        assert Config.REDIS_ENABLED is expected

    def test_invalid_log_level(self, restore_config):
        load_with_env(LOG_LEVEL="verbose")

        assert Config.LOG_LEVEL == "INFO"

    def test_config_dir_override(self, restore_config, tmp_path):
        load_with_env(VALOR_CONFIG_DIR=str(tmp_path))

        assert Config.CONFIG_DIR == tmp_path

    def test_summary_hides_the_database_url(self, restore_config):
        load_with_env(DATABASE_URL="postgresql+asyncpg://user:secret@db/valor")

        summary = Config.get_config_summary()

        assert summary["database_backend"] == "postgresql+asyncpg"
        assert "secret" not in str(summary)


# ============================================================================
# CONFIG MANAGER
# ============================================================================


@pytest.mark.unit
class TestConfigManager:
    def test_reads_repository_yaml(self, config_manager):
        assert config_manager.get("combat.pvp.crit_multiplier") == 1.5
        assert config_manager.get("auction.duration_hours") == 8
        assert "combat" in config_manager.get_all_keys()

    def test_missing_key_returns_default(self, config_manager):
        assert config_manager.get("combat.pvp.nope", 7) == 7
        assert config_manager.get("combat.pvp.crit_multiplier.deeper", "x") == "x"

    def test_override_wins_until_cleared(self, config_manager):
        config_manager.set_override("auction.duration_hours", 1)
        assert config_manager.get("auction.duration_hours") == 1

        config_manager.clear_overrides()
        assert config_manager.get("auction.duration_hours") == 8

    def test_files_are_deep_merged(self, tmp_path):
        # Arrange
        (tmp_path / "a.yaml").write_text("tower:\n  boss_multiplier: 2\n  keep: 1\n")
        (tmp_path / "b.yaml").write_text("tower:\n  boss_multiplier: 3\n")
        ConfigManager.reset()

        try:
            # Act
            ConfigManager.initialize(tmp_path)

            # Assert
            assert ConfigManager.get("tower.boss_multiplier") == 3
            assert ConfigManager.get("tower.keep") == 1
        finally:
            ConfigManager.reset()

    def test_missing_directory_uses_code_defaults(self, tmp_path):
        ConfigManager.reset()
        try:
            ConfigManager.initialize(tmp_path / "absent")
            assert ConfigManager.get("combat.pvp.crit_multiplier", 1.5) == 1.5
            assert ConfigManager.get_all_keys() == []
        finally:
            ConfigManager.reset()

    def test_malformed_yaml_raises(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("tower: [unclosed\n")
        ConfigManager.reset()
        try:
            with pytest.raises(ConfigInitializationError):
                ConfigManager.initialize(tmp_path)
        finally:
            ConfigManager.reset()

    def test_first_read_bootstraps(self, tmp_path, monkeypatch):
        (tmp_path / "core.yaml").write_text("presence:\n  ttl_seconds: 42\n")
        monkeypatch.setattr(Config, "CONFIG_DIR", tmp_path)
        ConfigManager.reset()
        try:
            assert ConfigManager.get("presence.ttl_seconds") == 42
        finally:
            ConfigManager.reset()
