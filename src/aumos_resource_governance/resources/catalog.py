"""Static resource catalog.

One :class:`ResourceDefinition` per governed resource type.  The catalog
is the single source of truth for which fields a filter may reference and
which operators each field accepts; the validator consults it at
authoring time, the evaluator never does.

Operator sets
-------------
The module-level tuples below group operators by the kind of field they
apply to.  Boolean fields only accept equality, time fields accept
ordering, range and age operators, and collection fields accept
membership and emptiness checks.
"""
from __future__ import annotations

from aumos_resource_governance.resources.definitions import (
    FieldDefinition,
    RelationshipDefinition,
    ResourceDefinition,
    ValueType,
)

# ---------------------------------------------------------------------------
# Operator groups
# ---------------------------------------------------------------------------

EQUALITY: tuple[str, ...] = ("eq", "ne")
MEMBERSHIP: tuple[str, ...] = EQUALITY + ("in", "not-in")
ORDERING: tuple[str, ...] = ("gt", "gte", "lt", "lte", "between")
NUMERIC: tuple[str, ...] = EQUALITY + ORDERING
COUNTING: tuple[str, ...] = EQUALITY + ("gt", "gte", "lt", "lte")
AGE: tuple[str, ...] = ("age-gt", "age-lt")
TIME_FULL: tuple[str, ...] = EQUALITY + ORDERING + AGE
TIME_RANGE: tuple[str, ...] = ORDERING + AGE
TIME_OPTIONAL: tuple[str, ...] = ("gt", "gte", "lt", "lte") + AGE + ("exists", "not-exists")
COLLECTION: tuple[str, ...] = ("contains", "not-contains", "empty", "not-empty")
PRESENCE: tuple[str, ...] = EQUALITY + ("exists", "not-exists")


def _field(
    value_type: ValueType,
    operators: tuple[str, ...],
    description: str = "",
    *,
    enum: tuple[str, ...] = (),
    examples: tuple[str, ...] = (),
    computed: bool = False,
    required: bool = False,
) -> FieldDefinition:
    return FieldDefinition(
        value_type=value_type,
        allowed_operators=frozenset(operators),
        description=description,
        enum_values=enum,
        examples=examples,
        computed=computed,
        required=required,
    )


def _rel(name: str, cardinality: str, target: str, direction: str = "outbound") -> RelationshipDefinition:
    return RelationshipDefinition(name=name, cardinality=cardinality, target=target, direction=direction)


S = ValueType.STRING
I = ValueType.INT  # noqa: E741
F = ValueType.FLOAT
B = ValueType.BOOL
T = ValueType.TIME
A = ValueType.ARRAY
M = ValueType.MAP

_TAGS = _field(M, COLLECTION, "Resource tags as a key/value map")

# ---------------------------------------------------------------------------
# Compute instances
# ---------------------------------------------------------------------------

EC2 = ResourceDefinition(
    name="ec2",
    service="EC2",
    description="Elastic Compute Cloud instances",
    aliases=("compute-instance", "instance"),
    fields={
        "instance_id": _field(
            S, MEMBERSHIP + ("starts-with", "ends-with", "regex"),
            "Unique instance identifier", examples=("i-1234567890abcdef0",), required=True,
        ),
        "name": _field(
            S,
            MEMBERSHIP + ("contains", "not-contains", "starts-with", "ends-with", "regex", "empty", "not-empty"),
            "Instance name (from the Name tag or the instance id)",
            examples=("web-server-1", "database-prod"),
        ),
        "instance_type": _field(
            S, MEMBERSHIP, "Instance type",
            enum=(
                "t3.nano", "t3.micro", "t3.small", "t3.medium", "t3.large", "t3.xlarge", "t3.2xlarge",
                "m5.large", "m5.xlarge", "m5.2xlarge", "m5.4xlarge",
                "c5.large", "c5.xlarge", "c5.2xlarge", "r5.large", "r5.xlarge",
            ),
            required=True,
        ),
        "state": _field(
            S, MEMBERSHIP, "Current instance state",
            enum=("pending", "running", "shutting-down", "terminated", "stopping", "stopped"),
            required=True,
        ),
        "launch_time": _field(
            T, TIME_FULL, "When the instance was launched",
            examples=("2024-01-15T10:30:00Z",), required=True,
        ),
        "public_ip": _field(S, PRESENCE + ("starts-with", "regex"), "Public IP address"),
        "private_ip": _field(S, EQUALITY + ("starts-with", "regex"), "Private IP address"),
        "vpc_id": _field(S, MEMBERSHIP + ("starts-with",), "VPC identifier"),
        "subnet_id": _field(S, MEMBERSHIP, "Subnet identifier"),
        "availability_zone": _field(S, MEMBERSHIP, "Availability zone"),
        "security_groups": _field(A, COLLECTION, "Attached security group ids"),
        "platform": _field(S, EQUALITY, "Platform", enum=("linux", "windows")),
        "architecture": _field(S, EQUALITY, "CPU architecture", enum=("i386", "x86_64", "arm64")),
        "hypervisor": _field(S, EQUALITY, "Hypervisor type", enum=("ovm", "xen", "nitro")),
        "cpu_utilization": _field(F, NUMERIC, "Average CPU utilization percentage", computed=True),
        "network_in": _field(F, ORDERING, "Average inbound network bytes", computed=True),
        "network_out": _field(F, ORDERING, "Average outbound network bytes", computed=True),
        "running_days": _field(I, NUMERIC, "Days since launch while running", computed=True),
        "uptime_percentage": _field(F, ORDERING, "Uptime percentage", computed=True),
        "monthly_cost": _field(F, ORDERING, "Estimated monthly cost", computed=True),
        "hourly_cost": _field(F, ORDERING, "Estimated hourly cost", computed=True),
        "root_device_type": _field(S, EQUALITY, "Root device type", enum=("ebs", "instance-store")),
        "ebs_optimized": _field(B, EQUALITY, "Whether the instance is EBS optimized"),
        "tags": _TAGS,
        "tag_count": _field(I, COUNTING, "Number of tags", computed=True),
    },
    relationships=(
        _rel("volumes", "one-to-many", "ebs"),
        _rel("security_groups", "many-to-many", "security-group"),
        _rel("subnet", "many-to-one", "subnet"),
        _rel("vpc", "many-to-one", "vpc"),
        _rel("key_pair", "many-to-one", "key-pair"),
        _rel("snapshots", "one-to-many", "snapshot"),
    ),
    actions=("start", "stop", "terminate", "reboot", "tag", "untag", "modify", "create-image", "create-snapshot"),
    common_tags=("Name", "Environment", "Owner", "Project", "CostCenter", "Application"),
)

# ---------------------------------------------------------------------------
# Object storage buckets
# ---------------------------------------------------------------------------

S3 = ResourceDefinition(
    name="s3",
    service="S3",
    description="Simple Storage Service buckets",
    aliases=("object-storage-bucket", "bucket"),
    fields={
        "name": _field(
            S, MEMBERSHIP + ("contains", "not-contains", "starts-with", "ends-with", "regex"),
            "Bucket name", required=True,
        ),
        "region": _field(S, MEMBERSHIP, "Bucket region", required=True),
        "creation_date": _field(T, TIME_FULL, "When the bucket was created", required=True),
        "public_read_acl": _field(B, EQUALITY, "ACL grants public read"),
        "public_write_acl": _field(B, EQUALITY, "ACL grants public write"),
        "public_read_policy": _field(B, EQUALITY, "Bucket policy grants public read"),
        "public_write_policy": _field(B, EQUALITY, "Bucket policy grants public write"),
        "block_public_acls": _field(B, EQUALITY, "Public access block: block public ACLs"),
        "block_public_policy": _field(B, EQUALITY, "Public access block: block public policy"),
        "ignore_public_acls": _field(B, EQUALITY, "Public access block: ignore public ACLs"),
        "restrict_public_buckets": _field(B, EQUALITY, "Public access block: restrict public buckets"),
        "versioning": _field(S, EQUALITY, "Versioning status", enum=("Enabled", "Suspended", "Disabled")),
        "mfa_delete": _field(B, EQUALITY, "MFA delete enabled"),
        "encrypted": _field(B, EQUALITY, "Default encryption enabled"),
        "encryption_algorithm": _field(S, MEMBERSHIP, "Encryption algorithm", enum=("AES256", "aws:kms")),
        "kms_key_id": _field(S, PRESENCE, "KMS key used for encryption"),
        "bucket_key_enabled": _field(B, EQUALITY, "Bucket key enabled"),
        "object_count": _field(I, NUMERIC, "Number of objects", computed=True),
        "size_bytes": _field(I, ORDERING, "Total size in bytes", computed=True),
        "size_gb": _field(F, ORDERING, "Total size in GiB", computed=True),
        "storage_class_standard": _field(I, ORDERING, "Bytes in STANDARD storage", computed=True),
        "storage_class_ia": _field(I, ORDERING, "Bytes in infrequent-access storage", computed=True),
        "storage_class_glacier": _field(I, ORDERING, "Bytes in GLACIER storage", computed=True),
        "monthly_cost": _field(F, ORDERING, "Estimated monthly cost", computed=True),
        "security_score": _field(I, NUMERIC, "Security posture score 0-100", computed=True),
        "compliance_issues": _field(A, COLLECTION, "Detected compliance issues", computed=True),
        "age_days": _field(I, NUMERIC, "Days since creation", computed=True),
        "tags": _TAGS,
        "tag_count": _field(I, COUNTING, "Number of tags", computed=True),
    },
    relationships=(
        _rel("cloudfront_distributions", "one-to-many", "cloudfront", "inbound"),
        _rel("access_logs", "one-to-one", "s3"),
    ),
    actions=(
        "delete", "tag", "untag", "encrypt", "enable-encryption", "block-public-access",
        "enable-versioning", "disable-versioning", "set-lifecycle", "set-policy",
    ),
    common_tags=("Environment", "Owner", "Project", "Purpose", "DataClassification"),
)

# ---------------------------------------------------------------------------
# Managed databases
# ---------------------------------------------------------------------------

RDS = ResourceDefinition(
    name="rds",
    service="RDS",
    description="Relational Database Service instances",
    aliases=("managed-database", "database"),
    fields={
        "db_instance_identifier": _field(
            S, MEMBERSHIP + ("contains", "starts-with", "ends-with", "regex"),
            "Database instance identifier", required=True,
        ),
        "db_name": _field(S, EQUALITY + ("contains", "starts-with", "ends-with", "exists", "not-exists"), "Database name"),
        "engine": _field(
            S, MEMBERSHIP, "Database engine",
            enum=(
                "mysql", "postgres", "mariadb", "oracle-ee", "oracle-se2", "oracle-se1", "oracle-se",
                "sqlserver-ee", "sqlserver-se", "sqlserver-ex", "sqlserver-web",
            ),
            required=True,
        ),
        "engine_version": _field(
            S, EQUALITY + ("starts-with", "contains", "gt", "gte", "lt", "lte"), "Engine version",
        ),
        "db_instance_class": _field(
            S, MEMBERSHIP, "Instance class",
            enum=(
                "db.t3.nano", "db.t3.micro", "db.t3.small", "db.t3.medium", "db.t3.large", "db.t3.xlarge",
                "db.t3.2xlarge", "db.r5.large", "db.r5.xlarge", "db.r5.2xlarge", "db.m5.large", "db.m5.xlarge",
            ),
            required=True,
        ),
        "db_instance_status": _field(
            S, MEMBERSHIP, "Instance status",
            enum=(
                "available", "backing-up", "creating", "deleting", "failed",
                "inaccessible-encryption-credentials", "incompatible-network", "incompatible-option-group",
                "incompatible-parameters", "incompatible-restore", "maintenance", "modifying", "rebooting",
                "renaming", "resetting-master-credentials", "restore-error", "starting", "stopped",
                "stopping", "storage-full", "storage-optimization", "upgrading",
            ),
            required=True,
        ),
        "instance_create_time": _field(T, TIME_FULL, "When the instance was created", required=True),
        "publicly_accessible": _field(B, EQUALITY, "Reachable from the public internet"),
        "vpc_id": _field(S, MEMBERSHIP, "VPC identifier"),
        "subnet_group": _field(S, EQUALITY + ("contains", "starts-with"), "DB subnet group"),
        "availability_zone": _field(S, MEMBERSHIP, "Availability zone"),
        "multi_az": _field(B, EQUALITY, "Multi-AZ deployment"),
        "security_groups": _field(A, COLLECTION, "VPC security group ids"),
        "allocated_storage": _field(I, NUMERIC, "Allocated storage in GiB"),
        "storage_type": _field(S, MEMBERSHIP, "Storage type", enum=("standard", "gp2", "gp3", "io1", "io2")),
        "storage_encrypted": _field(B, EQUALITY, "Storage encryption enabled"),
        "kms_key_id": _field(S, PRESENCE, "KMS key used for encryption"),
        "iops": _field(I, NUMERIC, "Provisioned IOPS"),
        "backup_retention_period": _field(I, NUMERIC, "Backup retention in days"),
        "backup_window": _field(S, EQUALITY + ("contains", "exists", "not-exists"), "Preferred backup window"),
        "maintenance_window": _field(S, EQUALITY + ("contains", "exists", "not-exists"), "Preferred maintenance window"),
        "auto_minor_version_upgrade": _field(B, EQUALITY, "Automatic minor version upgrades"),
        "deletion_protection": _field(B, EQUALITY, "Deletion protection enabled"),
        "cpu_utilization": _field(F, ORDERING, "Average CPU utilization percentage", computed=True),
        "database_connections": _field(I, ORDERING, "Average open connections", computed=True),
        "freeable_memory": _field(I, ORDERING, "Freeable memory in bytes", computed=True),
        "free_storage_space": _field(I, ORDERING, "Free storage in bytes", computed=True),
        "monthly_cost": _field(F, ORDERING, "Estimated monthly cost", computed=True),
        "age_days": _field(I, NUMERIC, "Days since creation", computed=True),
        "tags": _TAGS,
    },
    relationships=(
        _rel("snapshots", "one-to-many", "rds-snapshot"),
        _rel("subnet_group", "many-to-one", "db-subnet-group"),
        _rel("parameter_group", "many-to-one", "db-parameter-group"),
        _rel("option_group", "many-to-one", "db-option-group"),
        _rel("security_groups", "many-to-many", "security-group"),
    ),
    actions=("start", "stop", "reboot", "delete", "create-snapshot", "restore", "modify", "tag", "untag"),
    common_tags=("Environment", "Owner", "Project", "Application", "Database"),
)

# ---------------------------------------------------------------------------
# Serverless functions
# ---------------------------------------------------------------------------

LAMBDA = ResourceDefinition(
    name="lambda",
    service="Lambda",
    description="Lambda functions",
    aliases=("serverless-function", "function"),
    fields={
        "function_name": _field(
            S, MEMBERSHIP + ("contains", "starts-with", "ends-with", "regex"), "Function name", required=True,
        ),
        "function_arn": _field(S, EQUALITY + ("contains", "starts-with", "ends-with"), "Function ARN", required=True),
        "runtime": _field(
            S, MEMBERSHIP + ("starts-with",), "Runtime identifier",
            enum=(
                "nodejs18.x", "nodejs16.x", "nodejs14.x", "python3.11", "python3.10", "python3.9",
                "python3.8", "java17", "java11", "java8", "dotnet6", "go1.x", "ruby2.7", "provided.al2",
            ),
            required=True,
        ),
        "handler": _field(S, EQUALITY + ("contains", "starts-with"), "Handler entry point"),
        "description": _field(
            S, ("contains", "not-contains", "starts-with", "ends-with", "empty", "not-empty", "regex"),
            "Function description",
        ),
        "timeout": _field(I, NUMERIC, "Timeout in seconds"),
        "memory_size": _field(I, NUMERIC, "Memory in MiB"),
        "ephemeral_storage": _field(I, NUMERIC, "Ephemeral storage in MiB"),
        "code_size": _field(I, ORDERING, "Deployment package size in bytes"),
        "last_modified": _field(T, TIME_RANGE, "When the function was last modified"),
        "version": _field(S, EQUALITY + ("starts-with",), "Published version"),
        "package_type": _field(S, EQUALITY, "Package type", enum=("Zip", "Image")),
        "environment_variables": _field(M, COLLECTION, "Environment variables"),
        "env_var_count": _field(I, COUNTING, "Number of environment variables", computed=True),
        "vpc_config": _field(B, EQUALITY, "Function is attached to a VPC", computed=True),
        "vpc_id": _field(S, PRESENCE, "VPC identifier"),
        "subnet_ids": _field(A, COLLECTION, "Subnet ids"),
        "security_group_ids": _field(A, COLLECTION, "Security group ids"),
        "role": _field(S, EQUALITY + ("contains", "starts-with"), "Execution role ARN"),
        "duration_avg": _field(F, ORDERING, "Average duration in ms", computed=True),
        "concurrent_executions": _field(I, ORDERING, "Peak concurrent executions", computed=True),
        "error_rate": _field(F, ORDERING, "Error rate percentage", computed=True),
        "monthly_cost": _field(F, ORDERING, "Estimated monthly cost", computed=True),
        "age_days": _field(I, NUMERIC, "Days since last modification", computed=True),
        "last_invoked": _field(T, TIME_OPTIONAL, "Last invocation time", computed=True),
        "days_since_last_invocation": _field(I, ORDERING, "Days since last invocation", computed=True),
        "tags": _TAGS,
    },
    relationships=(
        _rel("triggers", "one-to-many", "event-source-mapping", "inbound"),
        _rel("role", "many-to-one", "iam-role"),
        _rel("layers", "many-to-many", "lambda-layer"),
        _rel("aliases", "one-to-many", "lambda-alias"),
        _rel("destinations", "one-to-many", "lambda-destination"),
    ),
    actions=(
        "invoke", "update-code", "update-configuration", "delete", "create-alias", "publish-version", "tag", "untag",
    ),
    common_tags=("Environment", "Owner", "Project", "Team", "Application"),
)

# ---------------------------------------------------------------------------
# Block volumes
# ---------------------------------------------------------------------------

EBS = ResourceDefinition(
    name="ebs",
    service="EC2",
    description="Elastic Block Store volumes",
    aliases=("block-volume", "volume"),
    fields={
        "volume_id": _field(S, MEMBERSHIP + ("starts-with", "ends-with"), "Volume identifier", required=True),
        "volume_type": _field(
            S, MEMBERSHIP, "Volume type", enum=("standard", "gp2", "gp3", "io1", "io2", "st1", "sc1"), required=True,
        ),
        "size": _field(I, NUMERIC, "Size in GiB", required=True),
        "state": _field(
            S, MEMBERSHIP, "Volume state",
            enum=("creating", "available", "in-use", "deleting", "deleted", "error"), required=True,
        ),
        "create_time": _field(T, TIME_RANGE, "When the volume was created", required=True),
        "availability_zone": _field(S, MEMBERSHIP, "Availability zone", required=True),
        "encrypted": _field(B, EQUALITY, "Volume encrypted"),
        "kms_key_id": _field(S, PRESENCE, "KMS key used for encryption"),
        "iops": _field(I, NUMERIC, "Provisioned IOPS"),
        "throughput": _field(I, NUMERIC, "Provisioned throughput MiB/s"),
        "multi_attach_enabled": _field(B, EQUALITY, "Multi-attach enabled"),
        "attachment_state": _field(
            S, MEMBERSHIP, "Attachment state", enum=("attaching", "attached", "detaching", "detached"),
        ),
        "instance_id": _field(S, PRESENCE, "Attached instance id"),
        "device": _field(S, EQUALITY + ("starts-with",), "Device name"),
        "delete_on_termination": _field(B, EQUALITY, "Deleted when the instance terminates"),
        "attach_time": _field(T, TIME_OPTIONAL, "When the volume was attached"),
        "snapshot_id": _field(S, PRESENCE, "Source snapshot id"),
        "queue_depth_avg": _field(F, ORDERING, "Average queue depth", computed=True),
        "utilization_percentage": _field(F, ORDERING, "Utilization percentage", computed=True),
        "monthly_cost": _field(F, ORDERING, "Estimated monthly cost", computed=True),
        "age_days": _field(I, NUMERIC, "Days since creation", computed=True),
        "days_since_attachment": _field(I, ORDERING, "Days since attachment", computed=True),
        "unused_days": _field(I, ORDERING, "Days without an attachment", computed=True),
        "tags": _TAGS,
    },
    relationships=(
        _rel("instance", "many-to-one", "ec2"),
        _rel("snapshots", "one-to-many", "snapshot"),
        _rel("source_snapshot", "many-to-one", "snapshot"),
    ),
    actions=("attach", "detach", "create-snapshot", "delete", "modify", "encrypt", "tag", "untag"),
    common_tags=("Name", "Environment", "Owner", "Project", "Backup"),
)

# ---------------------------------------------------------------------------
# Identity roles
# ---------------------------------------------------------------------------

IAM_ROLE = ResourceDefinition(
    name="iam-role",
    service="IAM",
    description="IAM roles",
    aliases=("identity-role", "role"),
    fields={
        "role_name": _field(
            S, MEMBERSHIP + ("contains", "starts-with", "ends-with", "regex"), "Role name", required=True,
        ),
        "role_id": _field(S, EQUALITY, "Role id", required=True),
        "arn": _field(S, EQUALITY + ("contains", "starts-with", "ends-with"), "Role ARN", required=True),
        "path": _field(S, EQUALITY + ("starts-with", "contains"), "Role path"),
        "description": _field(S, ("contains", "not-contains", "empty", "not-empty", "regex"), "Role description"),
        "create_date": _field(T, TIME_RANGE, "When the role was created", required=True),
        "max_session_duration": _field(I, NUMERIC, "Maximum session duration in seconds"),
        "assume_role_policy_document": _field(S, ("contains", "not-contains", "regex"), "Trust policy document"),
        "trusted_services": _field(A, COLLECTION, "Service principals trusted by the role", computed=True),
        "trusted_accounts": _field(A, COLLECTION, "Account principals trusted by the role", computed=True),
        "allows_cross_account": _field(B, EQUALITY, "Trust policy allows other accounts", computed=True),
        "attached_policies": _field(A, COLLECTION, "Attached managed policy ARNs"),
        "attached_policy_count": _field(I, COUNTING, "Number of attached managed policies", computed=True),
        "inline_policies": _field(A, COLLECTION, "Inline policy names"),
        "inline_policy_count": _field(I, COUNTING, "Number of inline policies", computed=True),
        "has_admin_access": _field(B, EQUALITY, "Role grants administrator access", computed=True),
        "last_used": _field(T, TIME_OPTIONAL, "When the role was last used", computed=True),
        "days_since_last_used": _field(I, ORDERING, "Days since last use", computed=True),
        "never_used": _field(B, EQUALITY, "Role has never been used", computed=True),
        "instance_profile_count": _field(I, COUNTING, "Number of instance profiles", computed=True),
        "lambda_function_count": _field(I, COUNTING, "Number of functions using the role", computed=True),
        "age_days": _field(I, NUMERIC, "Days since creation", computed=True),
        "tags": _TAGS,
    },
    relationships=(
        _rel("policies", "many-to-many", "iam-policy"),
        _rel("instance_profiles", "one-to-many", "instance-profile"),
        _rel("lambda_functions", "one-to-many", "lambda", "inbound"),
    ),
    actions=("delete", "attach-policy", "detach-policy", "put-inline-policy", "delete-inline-policy", "tag", "untag"),
    common_tags=("Environment", "Owner", "Project", "Team", "Purpose"),
)

RESOURCE_DEFINITIONS: dict[str, ResourceDefinition] = {
    definition.name: definition for definition in (EC2, S3, RDS, LAMBDA, EBS, IAM_ROLE)
}
