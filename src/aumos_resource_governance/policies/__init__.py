"""Policy model, parsing, storage and built-in templates."""
from __future__ import annotations

from aumos_resource_governance.policies.model import ActionSpec, FlatFilter, Policy, PolicyMode, PolicyStatus
from aumos_resource_governance.policies.parser import PolicyParser, validate_policy
from aumos_resource_governance.policies.store import InMemoryPolicyStore, PolicyStore
from aumos_resource_governance.policies.templates import (
    get_template,
    list_templates,
    render_template,
    template_variables,
    write_template,
)

__all__ = [
    "ActionSpec",
    "FlatFilter",
    "InMemoryPolicyStore",
    "Policy",
    "PolicyMode",
    "PolicyParser",
    "PolicyStatus",
    "PolicyStore",
    "get_template",
    "list_templates",
    "render_template",
    "template_variables",
    "validate_policy",
    "write_template",
]
