"""aumos-resource-governance — Policy-based governance for cloud resources.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import aumos_resource_governance as gov
>>> gov.__version__
'0.1.0'
>>> expr = gov.expression_from_dict({"field": "state", "operator": "eq", "value": "running"})
>>> gov.FilterEvaluator().evaluate(expr, {"state": "RUNNING"})
True
"""
from __future__ import annotations

__version__: str = "0.1.0"

from aumos_resource_governance.convenience import ResourceGovernor

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from aumos_resource_governance.errors import (
    ActionError,
    EvaluationError,
    GovernanceError,
    PolicyNotFoundError,
    ProviderError,
    StateWaitTimeoutError,
    UnsupportedResourceTypeError,
    ValidationError,
)

# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------
from aumos_resource_governance.resources.definitions import FieldDefinition, ResourceDefinition, ValueType
from aumos_resource_governance.resources.records import ResourceRecord
from aumos_resource_governance.resources.registry import SchemaRegistry, default_registry

# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------
from aumos_resource_governance.filters.builder import FilterBuilder
from aumos_resource_governance.filters.evaluator import FilterEvaluator, RelationshipResolver
from aumos_resource_governance.filters.expression import (
    And,
    Collection,
    Leaf,
    Not,
    Operator,
    Or,
    Relationship,
    expression_from_dict,
    expression_to_dict,
)
from aumos_resource_governance.filters.prebuilt import PrebuiltFilters, example_filters
from aumos_resource_governance.filters.validator import FilterValidator

# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------
from aumos_resource_governance.policies.model import ActionSpec, FlatFilter, Policy, PolicyStatus
from aumos_resource_governance.policies.parser import PolicyParser, validate_policy
from aumos_resource_governance.policies.store import InMemoryPolicyStore, PolicyStore

# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------
from aumos_resource_governance.execution.engine import ExecutorConfig, PolicyExecutionEngine
from aumos_resource_governance.execution.offline import SimulatedActionExecutor, StaticResourceProvider
from aumos_resource_governance.execution.providers import ActionExecutor, MetricsProvider, ResourceProvider
from aumos_resource_governance.execution.results import ActionResult, ExecutionResult, ScanResult

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from aumos_resource_governance.config import ConfigLoader, GovernanceConfig

# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------
from aumos_resource_governance.policies.templates import (
    get_template,
    list_templates,
    render_template,
    write_template,
)

__all__ = [
    "__version__",
    "ResourceGovernor",
    # Errors
    "ActionError",
    "EvaluationError",
    "GovernanceError",
    "PolicyNotFoundError",
    "ProviderError",
    "StateWaitTimeoutError",
    "UnsupportedResourceTypeError",
    "ValidationError",
    # Resources
    "FieldDefinition",
    "ResourceDefinition",
    "ResourceRecord",
    "SchemaRegistry",
    "ValueType",
    "default_registry",
    # Filters
    "And",
    "Collection",
    "FilterBuilder",
    "FilterEvaluator",
    "FilterValidator",
    "Leaf",
    "Not",
    "Operator",
    "Or",
    "PrebuiltFilters",
    "Relationship",
    "RelationshipResolver",
    "example_filters",
    "expression_from_dict",
    "expression_to_dict",
    # Policies
    "ActionSpec",
    "FlatFilter",
    "InMemoryPolicyStore",
    "Policy",
    "PolicyParser",
    "PolicyStatus",
    "PolicyStore",
    "validate_policy",
    # Execution
    "ActionExecutor",
    "ActionResult",
    "ExecutionResult",
    "ExecutorConfig",
    "MetricsProvider",
    "PolicyExecutionEngine",
    "ResourceProvider",
    "ScanResult",
    "SimulatedActionExecutor",
    "StaticResourceProvider",
    # Configuration
    "ConfigLoader",
    "GovernanceConfig",
    # Templates
    "get_template",
    "list_templates",
    "render_template",
    "write_template",
]
