"""Built-in parameterised policy templates.

Each template is a YAML policy document with ``${variable}`` placeholders
and a table of default values.  :func:`render_template` fills the
placeholders and parses the result into a :class:`Policy`, so a rendered
template goes through exactly the same parsing and validation as a
hand-written policy file.

Example
-------
>>> from aumos_resource_governance.policies.templates import list_templates, render_template
>>> list_templates()[:2]
['idle-rds-databases', 'public-s3-buckets']
>>> policy = render_template("unused-ec2-instances", cpu_threshold=10)
>>> policy.resource_type
'ec2'
"""
from __future__ import annotations

import logging
from pathlib import Path
from string import Template

from aumos_resource_governance.errors import ValidationError
from aumos_resource_governance.policies.model import Policy

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Template definitions
# ---------------------------------------------------------------------------

_UNUSED_EC2_INSTANCES = """\
# Unused EC2 Instances
# --------------------
# Finds running instances with low average CPU that have been up for a
# while, and stops them.  Runs as a dry run until the action is switched.

policies:
  - name: ${policy_name}
    resource_type: ec2
    description: Running instances below ${cpu_threshold}% CPU for at least ${days_unused} days
    filter:
      and:
        - {field: state, operator: eq, value: running}
        - {field: cpu_utilization, operator: lt, value: ${cpu_threshold}}
        - {field: running_days, operator: gte, value: ${days_unused}}
    actions:
      - type: ${action_type}
        dry_run: ${dry_run}
    tags: [cost-optimization, compute]
"""

_UNTAGGED_RESOURCES = """\
# Untagged Resources
# ------------------
# Applies a default value to resources that lack a required tag.

policies:
  - name: ${policy_name}
    resource_type: ${resource_type}
    description: Tag ${resource_type} resources missing the ${required_tag} tag
    filter:
      not:
        field: tags.${required_tag}
        operator: exists
    actions:
      - type: tag
        settings:
          tags:
            ${required_tag}: "${default_value}"
            Owner: "${default_owner}"
        dry_run: ${dry_run}
    tags: [tagging, compliance]
"""

_PUBLIC_S3_BUCKETS = """\
# Public S3 Buckets
# -----------------
# Locks down buckets whose ACL or bucket policy grants public access.

policies:
  - name: ${policy_name}
    resource_type: s3
    description: Block public access on publicly readable or writable buckets
    filter:
      or:
        - {field: public_read_acl, operator: eq, value: true}
        - {field: public_write_acl, operator: eq, value: true}
        - {field: public_read_policy, operator: eq, value: true}
        - {field: public_write_policy, operator: eq, value: true}
    actions:
      - type: ${action_type}
        settings:
          notify: "${notification_email}"
        dry_run: ${dry_run}
      - type: tag
        settings:
          tags:
            SecurityReview: required
        dry_run: ${dry_run}
    tags: [security, storage]
"""

_UNENCRYPTED_EBS_VOLUMES = """\
# Unencrypted EBS Volumes
# -----------------------
# Flags unencrypted volumes older than a grace period for encryption.

policies:
  - name: ${policy_name}
    resource_type: ebs
    description: Unencrypted volumes older than ${min_age}
    filter:
      and:
        - {field: encrypted, operator: eq, value: false}
        - {field: create_time, operator: age-gt, value: "${min_age}"}
    actions:
      - type: tag
        settings:
          tags:
            Compliance: unencrypted
        dry_run: ${dry_run}
    tags: [security, encryption]
"""

_IDLE_RDS_DATABASES = """\
# Idle RDS Databases
# ------------------
# Stops available databases that have almost no connections and low CPU.

policies:
  - name: ${policy_name}
    resource_type: rds
    description: Available databases with fewer than ${connection_threshold} connections
    filter:
      and:
        - {field: db_instance_status, operator: eq, value: available}
        - {field: database_connections, operator: lt, value: ${connection_threshold}}
        - {field: cpu_utilization, operator: lt, value: ${cpu_threshold}}
    actions:
      - type: ${action_type}
        dry_run: ${dry_run}
    tags: [cost-optimization, database]
"""

_STALE_LAMBDA_FUNCTIONS = """\
# Stale Lambda Functions
# ----------------------
# Marks functions that have not been invoked for a long time.

policies:
  - name: ${policy_name}
    resource_type: lambda
    description: Functions not invoked in the last ${days_unused} days
    filter:
      or:
        - {field: days_since_last_invocation, operator: gt, value: ${days_unused}}
        - and:
            - {field: last_invoked, operator: not-exists}
            - {field: last_modified, operator: age-gt, value: "${days_unused} days"}
    actions:
      - type: tag
        settings:
          tags:
            Lifecycle: stale
        dry_run: ${dry_run}
    tags: [cleanup, serverless]
"""

_UNUSED_IAM_ROLES = """\
# Unused IAM Roles
# ----------------
# Marks roles that were never used, or not used for a long time.

policies:
  - name: ${policy_name}
    resource_type: iam-role
    description: Roles unused for more than ${days_unused} days
    filter:
      and:
        - {field: age_days, operator: gt, value: ${days_unused}}
        - or:
            - {field: never_used, operator: eq, value: true}
            - {field: days_since_last_used, operator: gt, value: ${days_unused}}
    actions:
      - type: tag
        settings:
          tags:
            Lifecycle: unused
        dry_run: ${dry_run}
    tags: [security, identity]
"""

TEMPLATES: dict[str, str] = {
    "unused-ec2-instances": _UNUSED_EC2_INSTANCES,
    "untagged-resources": _UNTAGGED_RESOURCES,
    "public-s3-buckets": _PUBLIC_S3_BUCKETS,
    "unencrypted-ebs-volumes": _UNENCRYPTED_EBS_VOLUMES,
    "idle-rds-databases": _IDLE_RDS_DATABASES,
    "stale-lambda-functions": _STALE_LAMBDA_FUNCTIONS,
    "unused-iam-roles": _UNUSED_IAM_ROLES,
}

TEMPLATE_DEFAULTS: dict[str, dict[str, object]] = {
    "unused-ec2-instances": {
        "policy_name": "unused-ec2-instances",
        "cpu_threshold": 5.0,
        "days_unused": 7,
        "action_type": "stop",
        "dry_run": True,
    },
    "untagged-resources": {
        "policy_name": "untagged-resources",
        "resource_type": "ec2",
        "required_tag": "Environment",
        "default_value": "unassigned",
        "default_owner": "unknown",
        "dry_run": True,
    },
    "public-s3-buckets": {
        "policy_name": "public-s3-buckets",
        "action_type": "block-public-access",
        "notification_email": "security@example.com",
        "dry_run": True,
    },
    "unencrypted-ebs-volumes": {
        "policy_name": "unencrypted-ebs-volumes",
        "min_age": "7d",
        "dry_run": True,
    },
    "idle-rds-databases": {
        "policy_name": "idle-rds-databases",
        "connection_threshold": 1,
        "cpu_threshold": 5.0,
        "action_type": "stop",
        "dry_run": True,
    },
    "stale-lambda-functions": {
        "policy_name": "stale-lambda-functions",
        "days_unused": 90,
        "dry_run": True,
    },
    "unused-iam-roles": {
        "policy_name": "unused-iam-roles",
        "days_unused": 90,
        "dry_run": True,
    },
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_template(name: str) -> str:
    """Return the raw YAML text of a built-in template.

    Parameters
    ----------
    name:
        The template identifier.  See :func:`list_templates`.

    Raises
    ------
    KeyError
        If *name* is not a known template.
    """
    if name not in TEMPLATES:
        available = ", ".join(sorted(TEMPLATES))
        raise KeyError(f"Template {name!r} not found. Available templates: {available}.")
    return TEMPLATES[name]


def list_templates() -> list[str]:
    """Return the built-in template names in alphabetical order."""
    return sorted(TEMPLATES)


def template_variables(name: str) -> dict[str, object]:
    """Return the variables of template *name* with their default values."""
    get_template(name)
    return dict(TEMPLATE_DEFAULTS[name])


def render_template_text(name: str, **variables: object) -> str:
    """Substitute *variables* (over the defaults) into template *name*.

    Raises
    ------
    KeyError
        If *name* is unknown.
    ValidationError
        If a variable is not declared by the template.
    """
    text = get_template(name)
    defaults = TEMPLATE_DEFAULTS[name]
    unknown = sorted(set(variables) - set(defaults))
    if unknown:
        raise ValidationError(
            f"Template {name!r} does not accept these variables",
            [f"unknown variable: {var}" for var in unknown],
        )
    values = {key: _to_yaml_text(value) for key, value in {**defaults, **variables}.items()}
    return Template(text).substitute(values)


def render_template(name: str, **variables: object) -> Policy:
    """Render template *name* and parse it into a :class:`Policy`.

    The returned policy records the template it came from in
    ``template_id`` and ``source``.

    Example
    -------
    >>> policy = render_template("unused-iam-roles", days_unused=30)
    >>> policy.template_id
    'unused-iam-roles'
    """
    from aumos_resource_governance.policies.parser import PolicyParser

    policies = PolicyParser().parse_string(render_template_text(name, **variables))
    policy = policies[0]
    policy.template_id = name
    policy.source = "template"
    logger.debug("Rendered template '%s' as policy '%s'", name, policy.name)
    return policy


def write_template(name: str, output_path: Path, **variables: object) -> Path:
    """Write a template to *output_path*, rendered when *variables* are given.

    Without variables the raw text, placeholders included, is written.
    Parent directories are created automatically.

    Returns
    -------
    Path
        The resolved path of the written file.
    """
    content = render_template_text(name, **variables) if variables else get_template(name)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    return output_path.resolve()


def _to_yaml_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
