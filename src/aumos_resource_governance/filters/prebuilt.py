"""Parameterised filter patterns and per-type example filters.

Example
-------
>>> idle = PrebuiltFilters.unused_instances(cpu_threshold=5.0, min_days=7)
>>> [leaf.field for leaf in idle.children]
['state', 'cpu_utilization', 'running_days']
"""
from __future__ import annotations

from aumos_resource_governance.filters.expression import And, FilterExpression, Leaf, Or

DEVELOPMENT_ENVIRONMENTS: tuple[str, ...] = ("dev", "development", "test", "testing", "staging")
PRODUCTION_ENVIRONMENTS: tuple[str, ...] = ("prod", "production", "live")


class PrebuiltFilters:
    """Factory methods for common governance filters."""

    @staticmethod
    def unused_instances(cpu_threshold: float = 5.0, min_days: int = 7) -> And:
        """Running instances below *cpu_threshold* percent CPU for at least *min_days*."""
        return And(
            (
                Leaf("state", "eq", "running"),
                Leaf("cpu_utilization", "lt", float(cpu_threshold)),
                Leaf("running_days", "gte", int(min_days)),
            )
        )

    @staticmethod
    def public_buckets() -> Or:
        """Buckets granting public read or write through ACLs or policies."""
        return Or(
            tuple(
                Leaf(name, "eq", True)
                for name in ("public_read_acl", "public_write_acl", "public_read_policy", "public_write_policy")
            )
        )

    @staticmethod
    def unencrypted_resources() -> Or:
        return Or(
            (
                Leaf("encrypted", "eq", False),
                Leaf("encryption.enabled", "eq", False),
                Leaf("storage_encrypted", "eq", False),
            )
        )

    @staticmethod
    def missing_required_tags(*tags: str) -> Or:
        """Resources lacking at least one of *tags*."""
        return Or(tuple(Leaf(f"tags.{tag}", "not-exists") for tag in tags))

    @staticmethod
    def high_cost(threshold: float) -> Leaf:
        return Leaf("monthly_cost", "gt", float(threshold))

    @staticmethod
    def older_than(days: int) -> Leaf:
        return Leaf("age_days", "gt", int(days))

    @staticmethod
    def unused_for_days(days: int) -> Or:
        return Or(
            (
                Leaf("days_since_last_used", "gt", int(days)),
                Leaf("days_since_last_invocation", "gt", int(days)),
                Leaf("unused_days", "gt", int(days)),
            )
        )

    @staticmethod
    def development_resources() -> Or:
        """Classify by ``Environment`` tag or by a dev-like name."""
        return Or(
            (
                Leaf("tags.Environment", "in", list(DEVELOPMENT_ENVIRONMENTS)),
                Leaf("name", "regex", "(dev|test|stage|sandbox)"),
            )
        )

    @staticmethod
    def production_resources() -> Or:
        return Or(
            (
                Leaf("tags.Environment", "in", list(PRODUCTION_ENVIRONMENTS)),
                Leaf("name", "regex", "(prod|production)"),
            )
        )


def _ec2_examples() -> dict[str, FilterExpression]:
    return {
        "Unused instances (CPU < 5% for 7+ days)": PrebuiltFilters.unused_instances(5.0, 7),
        "Expensive instances (>$100/month)": PrebuiltFilters.high_cost(100.0),
        "Development instances": Or(
            (
                Leaf("tags.Environment", "in", ["dev", "test", "staging"]),
                Leaf("name", "regex", "(dev|test|stage)"),
            )
        ),
        "Instances missing Owner tag": Leaf("tags.Owner", "not-exists"),
        "Old instances (>90 days)": Leaf("running_days", "gt", 90),
        "Small instances with high cost": And(
            (
                Leaf("instance_type", "in", ["t3.nano", "t3.micro", "t3.small"]),
                Leaf("monthly_cost", "gt", 50.0),
            )
        ),
        "Production instances with a public IP": And(
            (
                Leaf("public_ip", "exists"),
                Leaf("vpc_id", "starts-with", "vpc-"),
                Leaf("tags.Environment", "eq", "prod"),
            )
        ),
        "Windows instances older than 1 year": And(
            (Leaf("platform", "eq", "windows"), Leaf("launch_time", "age-gt", "365 days"))
        ),
    }


def _s3_examples() -> dict[str, FilterExpression]:
    return {
        "Public buckets": Or((Leaf("public_read_acl", "eq", True), Leaf("public_write_acl", "eq", True))),
        "Unencrypted buckets": Leaf("encrypted", "eq", False),
        "Large buckets (>100GB)": Leaf("size_gb", "gt", 100.0),
        "Buckets without versioning": Leaf("versioning", "eq", "Disabled"),
        "Old empty buckets": And((Leaf("object_count", "eq", 0), Leaf("age_days", "gt", 30))),
        "High-cost buckets": PrebuiltFilters.high_cost(100.0),
        "Buckets with low security score": Leaf("security_score", "lt", 50),
        "Buckets missing data classification": Leaf("tags.DataClassification", "not-exists"),
    }


def _rds_examples() -> dict[str, FilterExpression]:
    return {
        "Publicly accessible databases": Leaf("publicly_accessible", "eq", True),
        "Unencrypted databases": Leaf("storage_encrypted", "eq", False),
        "Databases without backup": Leaf("backup_retention_period", "eq", 0),
        "Single-AZ production databases": And(
            (Leaf("multi_az", "eq", False), Leaf("tags.Environment", "eq", "prod"))
        ),
        "Underutilized databases": And(
            (
                Leaf("cpu_utilization", "lt", 20.0),
                Leaf("database_connections", "lt", 10),
                Leaf("age_days", "gt", 7),
            )
        ),
        "Expensive databases": PrebuiltFilters.high_cost(200.0),
        "Old databases": PrebuiltFilters.older_than(365),
    }


def _lambda_examples() -> dict[str, FilterExpression]:
    return {
        "Unused functions (no invocations in 30 days)": Leaf("days_since_last_invocation", "gt", 30),
        "High error rate functions": Leaf("error_rate", "gt", 10.0),
        "Over-provisioned functions": And((Leaf("memory_size", "gt", 1024), Leaf("duration_avg", "lt", 1000))),
        "Expensive functions": PrebuiltFilters.high_cost(50.0),
        "Functions with VPC config": Leaf("vpc_config", "eq", True),
        "Old runtime functions": Leaf("runtime", "in", ["python3.7", "nodejs12.x", "java8"]),
        "Functions with many environment variables": Leaf("env_var_count", "gt", 20),
    }


def _ebs_examples() -> dict[str, FilterExpression]:
    return {
        "Unattached volumes": Leaf("state", "eq", "available"),
        "Old unattached volumes": And((Leaf("state", "eq", "available"), Leaf("unused_days", "gt", 7))),
        "Unencrypted volumes": Leaf("encrypted", "eq", False),
        "Large volumes": Leaf("size", "gt", 1000),
        "Underutilized volumes": And(
            (Leaf("state", "eq", "in-use"), Leaf("utilization_percentage", "lt", 10.0))
        ),
        "Expensive volumes": PrebuiltFilters.high_cost(100.0),
        "GP2 volumes that could be GP3": And((Leaf("volume_type", "eq", "gp2"), Leaf("size", "gt", 100))),
    }


def _iam_role_examples() -> dict[str, FilterExpression]:
    return {
        "Unused roles (never used)": Leaf("never_used", "eq", True),
        "Roles not used in 90 days": Leaf("days_since_last_used", "gt", 90),
        "Roles with admin access": Leaf("has_admin_access", "eq", True),
        "Roles allowing cross-account access": Leaf("allows_cross_account", "eq", True),
        "Roles with many policies": Leaf("attached_policy_count", "gt", 10),
        "Old unused roles": And((Leaf("age_days", "gt", 90), Leaf("days_since_last_used", "gt", 30))),
        "Service roles for EC2": Leaf("trusted_services", "contains", "ec2.amazonaws.com"),
    }


_EXAMPLES = {
    "ec2": _ec2_examples,
    "s3": _s3_examples,
    "rds": _rds_examples,
    "lambda": _lambda_examples,
    "ebs": _ebs_examples,
    "iam-role": _iam_role_examples,
}


def example_filters(resource_type: str) -> dict[str, FilterExpression]:
    """Return named example filters for a canonical resource type (empty if unknown)."""
    factory = _EXAMPLES.get(resource_type)
    return factory() if factory is not None else {}
