"""Policy execution: collaborator interfaces, the engine and run records."""
from __future__ import annotations

from aumos_resource_governance.execution.batching import process_in_batches, wait_for_state
from aumos_resource_governance.execution.confirm import Confirmer, ConsoleConfirmer, StaticConfirmer
from aumos_resource_governance.execution.engine import ExecutorConfig, PolicyExecutionEngine
from aumos_resource_governance.execution.offline import SimulatedActionExecutor, StaticResourceProvider
from aumos_resource_governance.execution.providers import (
    ActionExecutor,
    ActionOutcome,
    BucketQuery,
    DatabaseQuery,
    FunctionQuery,
    InstanceQuery,
    MetricsProvider,
    ResourceOutcome,
    ResourceProvider,
    RoleQuery,
    VolumeQuery,
)
from aumos_resource_governance.execution.results import (
    ActionResult,
    CostImpact,
    ExecutionResult,
    ExecutionSummary,
    PlannedAction,
    ScanResult,
    SkippedAction,
)
from aumos_resource_governance.execution.translation import flat_filters_to_expression, flat_filters_to_query

__all__ = [
    "ActionExecutor",
    "ActionOutcome",
    "ActionResult",
    "BucketQuery",
    "Confirmer",
    "ConsoleConfirmer",
    "CostImpact",
    "DatabaseQuery",
    "ExecutionResult",
    "ExecutionSummary",
    "ExecutorConfig",
    "FunctionQuery",
    "InstanceQuery",
    "MetricsProvider",
    "PlannedAction",
    "PolicyExecutionEngine",
    "ResourceOutcome",
    "ResourceProvider",
    "RoleQuery",
    "ScanResult",
    "SimulatedActionExecutor",
    "SkippedAction",
    "StaticConfirmer",
    "StaticResourceProvider",
    "VolumeQuery",
    "flat_filters_to_expression",
    "flat_filters_to_query",
    "wait_for_state",
]
