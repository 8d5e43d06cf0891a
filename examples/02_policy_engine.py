#!/usr/bin/env python3
"""Example: Filters, Policies and the Execution Engine

Demonstrates building a filter with the fluent builder, parsing a policy
from YAML, and running it live against an offline inventory with an
explicit confirmation step.

Usage:
    python examples/02_policy_engine.py

Requirements:
    pip install aumos-resource-governance
"""
from __future__ import annotations

import aumos_resource_governance as gov
from aumos_resource_governance import (
    ExecutorConfig,
    FilterBuilder,
    InMemoryPolicyStore,
    PolicyExecutionEngine,
    PolicyParser,
    SimulatedActionExecutor,
    StaticResourceProvider,
    expression_to_dict,
)
from aumos_resource_governance.execution.confirm import StaticConfirmer

POLICY_YAML = """\
policies:
  - name: tag-untracked-volumes
    resource_type: ebs
    filter:
      and:
        - {field: state, operator: eq, value: available}
        - not: {field: tags.Owner, operator: exists}
    actions:
      - type: tag
        settings:
          tags: {Owner: unknown}
  - name: delete-old-volumes
    resource_type: ebs
    filter:
      and:
        - {field: state, operator: eq, value: available}
        - {field: create_time, operator: age-gt, value: 90d}
    actions: [delete]
"""


def main() -> None:
    print(f"aumos-resource-governance version: {gov.__version__}")

    # Step 1: Build and validate a filter fluently
    builder = FilterBuilder("ebs")
    builder.field("encrypted").equals(False).and_(FilterBuilder("ebs").field("size").greater_than(100).build())
    expression = builder.build()
    print("Filter:", expression_to_dict(expression))

    # Step 2: Parse policies and check them against the schema registry
    policies = PolicyParser().parse_string(POLICY_YAML)
    for policy in policies:
        problems = gov.validate_policy(policy)
        print(f"  {policy.name}: {'valid' if not problems else problems}")

    # Step 3: Wire an engine over an offline inventory
    provider = StaticResourceProvider(
        {
            "ebs": [
                {"volume_id": "vol-1", "state": "available", "create_time": "2023-01-01T00:00:00Z", "tags": {}},
                {"volume_id": "vol-2", "state": "in-use", "create_time": "2023-01-01T00:00:00Z", "tags": {}},
            ]
        }
    )
    confirmer = StaticConfirmer(False)
    engine = PolicyExecutionEngine(
        InMemoryPolicyStore(policies),
        provider,
        SimulatedActionExecutor(provider=provider),
        config=ExecutorConfig(dry_run=False),
        confirmer=confirmer,
    )

    # Step 4: Run live; the destructive delete is declined
    for result in engine.execute_all():
        print(f"\n{result.policy_name}: matched={result.resources_matched} modified={result.summary.resources_modified}")
        for skipped in result.skipped_actions:
            print(f"  skipped {skipped.action} on {skipped.resource_count} resources: {skipped.reason}")

    print("\nvol-1 tags after run:", provider.get("ebs", "vol-1").get("tags"))  # type: ignore[union-attr]


if __name__ == "__main__":
    main()
