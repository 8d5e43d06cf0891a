"""Convenience API for aumos-resource-governance, a few-line quickstart.

Example
-------
::

    from aumos_resource_governance import ResourceGovernor
    governor = ResourceGovernor(inventory={"ec2": [{"instance_id": "i-1", "state": "running"}]})
    governor.add_template("unused-ec2-instances")
    for result in governor.run():
        print(result.policy_name, result.resources_matched)

"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any


class ResourceGovernor:
    """Zero-config policy governance over an in-memory inventory.

    Wraps the policy store, an offline provider and executor, and the
    execution engine with dry-run defaults.

    Parameters
    ----------
    inventory:
        Mapping of resource type to attribute mappings, served by a
        :class:`~aumos_resource_governance.execution.offline.StaticResourceProvider`.
        Ignored when *provider* is given.
    provider:
        Custom resource provider.
    executor:
        Custom action executor; defaults to a simulated executor.
    config:
        Governance configuration; defaults apply when omitted.
    confirmer:
        Asked before destructive live actions.

    Example
    -------
    ::

        governor = ResourceGovernor(inventory={"s3": [{"name": "logs", "public_read_acl": True}]})
        governor.add_template("public-s3-buckets")
        scans = governor.scan()
        print(scans[0].matched_resource_ids)  # ('logs',)
    """

    def __init__(
        self,
        inventory: Mapping[str, Sequence[Mapping[str, Any]]] | None = None,
        provider: Any = None,
        executor: Any = None,
        config: Any = None,
        confirmer: Any = None,
    ) -> None:
        from aumos_resource_governance.config import GovernanceConfig
        from aumos_resource_governance.execution.engine import ExecutorConfig, PolicyExecutionEngine
        from aumos_resource_governance.execution.offline import SimulatedActionExecutor, StaticResourceProvider
        from aumos_resource_governance.policies.parser import PolicyParser
        from aumos_resource_governance.policies.store import InMemoryPolicyStore

        self._config = config or GovernanceConfig()
        self._store = InMemoryPolicyStore()
        self._parser = PolicyParser()
        self._provider = provider if provider is not None else StaticResourceProvider(inventory or {})
        if executor is None:
            static = self._provider if isinstance(self._provider, StaticResourceProvider) else None
            executor = SimulatedActionExecutor(provider=static)
        self._executor = executor
        self._engine = PolicyExecutionEngine(
            self._store,
            self._provider,
            self._executor,
            config=ExecutorConfig.from_config(self._config),
            confirmer=confirmer,
        )
        for raw in self._config.policies:
            self.add_policy(raw)

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def add_policy(self, policy: Any) -> Any:
        """Store a :class:`Policy` or a policy mapping and return the policy."""
        from aumos_resource_governance.policies.model import Policy

        if not isinstance(policy, Policy):
            policy = self._parser.parse_dict(policy)
        self._store.save(policy)
        return policy

    def load_policies(self, path: str | Path) -> list[Any]:
        """Parse a policy file and store every policy in it."""
        policies = self._parser.parse(path)
        for policy in policies:
            self._store.save(policy)
        return policies

    def add_template(self, name: str, **variables: Any) -> Any:
        """Render a built-in template and store the resulting policy."""
        from aumos_resource_governance.policies.templates import render_template

        policy = render_template(name, **variables)
        self._store.save(policy)
        return policy

    def validate(self, name: str) -> list[str]:
        """Return the validation problems of the stored policy *name*."""
        from aumos_resource_governance.policies.parser import validate_policy

        return validate_policy(self._store.get(name))

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def scan(self, name: str | None = None) -> list[Any]:
        """Plan one policy, or every active policy when *name* is omitted."""
        if name is not None:
            return [self._engine.scan_policy(name)]
        return self._engine.scan_all()

    def run(self, name: str | None = None, dry_run: bool | None = None) -> list[Any]:
        """Execute one policy, or every active policy when *name* is omitted."""
        if name is not None:
            return [self._engine.execute_policy(name, dry_run=dry_run)]
        return self._engine.execute_all(dry_run=dry_run)

    @property
    def engine(self) -> Any:
        """The underlying PolicyExecutionEngine instance."""
        return self._engine

    @property
    def store(self) -> Any:
        """The underlying policy store."""
        return self._store

    def __repr__(self) -> str:
        return f"ResourceGovernor(policies={len(self._store)}, dry_run={self._config.execution.dry_run})"
