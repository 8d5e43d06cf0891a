"""Governance configuration loader with Pydantic v2 validation.

Loads and validates a ``governance.yaml`` file into a typed
:class:`GovernanceConfig` object.  Unknown keys are allowed to support
future schema additions without breakage.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load(Path("governance.yaml"))
>>> config.execution.dry_run
True
"""
from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from aumos_resource_governance.execution.actions import (
    DEFAULT_SAVINGS_PER_ACTION,
    DESTRUCTIVE_ACTIONS,
    SECURITY_ACTIONS,
)


class ExecutionConfig(BaseModel):
    """Safety and batching settings for policy runs."""

    model_config = {"extra": "allow"}

    dry_run: bool = Field(default=True)
    confirm_actions: bool = Field(default=True)
    stop_on_error: bool = Field(default=False)
    validate_before_run: bool = Field(default=True)
    batch_size: int = Field(default=10, ge=1)
    save_results: bool = Field(default=True)
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    wait_timeout_seconds: float = Field(default=300.0, gt=0)
    destructive_actions: list[str] = Field(default_factory=lambda: sorted(DESTRUCTIVE_ACTIONS))


class CostConfig(BaseModel):
    """Heuristic cost estimation settings."""

    model_config = {"extra": "allow"}

    currency: str = Field(default="USD")
    savings_per_action: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_SAVINGS_PER_ACTION))
    security_actions: list[str] = Field(default_factory=lambda: sorted(SECURITY_ACTIONS))

    @field_validator("savings_per_action")
    @classmethod
    def validate_savings(cls, values: dict[str, float]) -> dict[str, float]:
        for action, amount in values.items():
            if amount < 0:
                raise ValueError(f"Savings for action '{action}' must not be negative")
        return values


class LoggingConfig(BaseModel):
    """Log level used by the command line interface."""

    model_config = {"extra": "allow"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")

    @field_validator("level", mode="before")
    @classmethod
    def normalise_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


class GovernanceConfig(BaseModel):
    """Top-level governance configuration schema.

    Loaded from ``governance.yaml``.  All sections are optional and
    fall back to sensible defaults.
    """

    model_config = {"extra": "allow"}

    version: str = Field(default="1")
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    cost: CostConfig = Field(default_factory=CostConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    policy_files: list[Path] = Field(default_factory=list)
    policies: list[dict[str, object]] = Field(default_factory=list)
    inventory: Path | None = Field(default=None)


class ConfigLoader:
    """Loads and validates governance YAML configuration.

    Example
    -------
    >>> loader = ConfigLoader()
    >>> config = loader.load(Path("governance.yaml"))
    """

    def load(self, config_path: Path) -> GovernanceConfig:
        """Load and validate a governance YAML file.

        Parameters
        ----------
        config_path:
            Path to the ``governance.yaml`` file.

        Returns
        -------
        GovernanceConfig
            Validated configuration object.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ValueError:
            When the YAML content fails Pydantic validation.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Governance config not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            raw: dict[str, object] = yaml.safe_load(fh) or {}

        return GovernanceConfig.model_validate(raw)

    def load_string(self, yaml_content: str) -> GovernanceConfig:
        """Load and validate a YAML string directly."""
        raw: dict[str, object] = yaml.safe_load(yaml_content) or {}
        return GovernanceConfig.model_validate(raw)

    def defaults(self) -> GovernanceConfig:
        """Return a default configuration with all defaults applied."""
        return GovernanceConfig()
