"""Tests for ConfigLoader and the engine settings derived from it."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from aumos_resource_governance.config import ConfigLoader, GovernanceConfig
from aumos_resource_governance.execution.engine import ExecutorConfig


# ---------------------------------------------------------------------------
# ConfigLoader — defaults
# ---------------------------------------------------------------------------


class TestConfigLoaderDefaults:
    def test_defaults_returns_governance_config(self) -> None:
        assert isinstance(ConfigLoader().defaults(), GovernanceConfig)

    def test_defaults_are_safe(self) -> None:
        config = ConfigLoader().defaults()
        assert config.execution.dry_run is True
        assert config.execution.confirm_actions is True
        assert config.execution.stop_on_error is False

    def test_defaults_batch_size(self) -> None:
        assert ConfigLoader().defaults().execution.batch_size == 10

    def test_defaults_destructive_actions(self) -> None:
        assert ConfigLoader().defaults().execution.destructive_actions == ["delete", "stop", "terminate"]

    def test_defaults_savings(self) -> None:
        assert ConfigLoader().defaults().cost.savings_per_action["stop"] == 50.0

    def test_defaults_logging_level(self) -> None:
        assert ConfigLoader().defaults().logging.level == "INFO"

    def test_defaults_no_inventory(self) -> None:
        assert ConfigLoader().defaults().inventory is None


# ---------------------------------------------------------------------------
# ConfigLoader — load_string
# ---------------------------------------------------------------------------


class TestConfigLoaderLoadString:
    def test_empty_yaml_uses_defaults(self) -> None:
        assert isinstance(ConfigLoader().load_string(""), GovernanceConfig)

    def test_execution_section(self) -> None:
        yaml_str = "execution:\n  dry_run: false\n  batch_size: 25\n"
        config = ConfigLoader().load_string(yaml_str)
        assert config.execution.dry_run is False
        assert config.execution.batch_size == 25

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            ConfigLoader().load_string("execution:\n  batch_size: 0\n")

    def test_negative_savings_rejected(self) -> None:
        with pytest.raises(ValueError, match="must not be negative"):
            ConfigLoader().load_string("cost:\n  savings_per_action:\n    stop: -1\n")

    def test_logging_level_is_normalised(self) -> None:
        assert ConfigLoader().load_string("logging:\n  level: debug\n").logging.level == "DEBUG"

    def test_unknown_logging_level_rejected(self) -> None:
        with pytest.raises(ValueError):
            ConfigLoader().load_string("logging:\n  level: chatty\n")

    def test_unknown_keys_are_allowed(self) -> None:
        config = ConfigLoader().load_string("future_section:\n  enabled: true\n")
        assert isinstance(config, GovernanceConfig)

    def test_inline_policies(self) -> None:
        yaml_str = textwrap.dedent("""\
            policies:
              - name: stop-idle
                resource_type: ec2
                actions: [stop]
        """)
        config = ConfigLoader().load_string(yaml_str)
        assert len(config.policies) == 1

    def test_inventory_path(self) -> None:
        config = ConfigLoader().load_string("inventory: inventory.yaml\n")
        assert config.inventory == Path("inventory.yaml")


# ---------------------------------------------------------------------------
# ConfigLoader — load (file)
# ---------------------------------------------------------------------------


class TestConfigLoaderLoadFile:
    def test_load_file_not_found_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            ConfigLoader().load(tmp_path / "nonexistent.yaml")

    def test_load_valid_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "governance.yaml"
        config_file.write_text("version: '3'\n", encoding="utf-8")
        assert ConfigLoader().load(config_file).version == "3"

    def test_load_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "governance.yaml"
        config_file.write_text("", encoding="utf-8")
        assert isinstance(ConfigLoader().load(config_file), GovernanceConfig)


# ---------------------------------------------------------------------------
# ExecutorConfig.from_config
# ---------------------------------------------------------------------------


class TestExecutorConfigFromConfig:
    def test_defaults_match(self) -> None:
        config = ExecutorConfig.from_config(GovernanceConfig())
        assert config.dry_run is True
        assert config.batch_size == 10
        assert config.destructive_actions == frozenset({"stop", "terminate", "delete"})
        assert config.currency == "USD"

    def test_sections_are_copied(self) -> None:
        yaml_str = textwrap.dedent("""\
            execution:
              dry_run: false
              stop_on_error: true
              destructive_actions: [terminate]
            cost:
              currency: EUR
              savings_per_action: {stop: 20}
        """)
        config = ExecutorConfig.from_config(ConfigLoader().load_string(yaml_str))
        assert config.dry_run is False
        assert config.stop_on_error is True
        assert config.destructive_actions == frozenset({"terminate"})
        assert config.savings_per_action == {"stop": 20.0}
        assert config.currency == "EUR"
