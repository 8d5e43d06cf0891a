#!/usr/bin/env python3
"""Example: Quickstart — aumos-resource-governance

Minimal working example: describe an inventory, add a policy from a
template, scan it, and do a dry run.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install aumos-resource-governance
"""
from __future__ import annotations

import aumos_resource_governance as gov


def main() -> None:
    print(f"aumos-resource-governance version: {gov.__version__}")

    # Step 1: Describe the resources to govern
    governor = gov.ResourceGovernor(
        inventory={
            "ec2": [
                {
                    "instance_id": "i-0a1b",
                    "state": "running",
                    "cpu_utilization": 1.4,
                    "launch_time": "2024-01-10T08:00:00Z",
                    "monthly_cost": 62.0,
                },
                {
                    "instance_id": "i-0c2d",
                    "state": "running",
                    "cpu_utilization": 71.0,
                    "launch_time": "2024-01-10T08:00:00Z",
                },
            ]
        }
    )

    # Step 2: Add a policy from a built-in template
    policy = governor.add_template("unused-ec2-instances", cpu_threshold=5)
    print(f"Policy '{policy.name}' on {policy.resource_type}: {policy.description}")

    # Step 3: Scan to see what the policy would touch
    for scan in governor.scan():
        print(f"\nScan: {scan.resources_matched} of {scan.resources_found} resources matched")
        for planned in scan.planned_actions:
            kind = "destructive" if planned.destructive else "safe"
            print(f"  {planned.action} ({kind}) -> {', '.join(planned.resource_ids)}")

    # Step 4: Dry run
    for result in governor.run():
        print(f"\nDry run of '{result.policy_name}': success={result.success}")
        for action_result in result.action_results:
            print(f"  [{action_result.resource_id}] {action_result.message}")


if __name__ == "__main__":
    main()
