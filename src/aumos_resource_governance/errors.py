"""Exception hierarchy for aumos-resource-governance.

All library errors derive from :class:`GovernanceError` so callers can
catch everything raised by the package with a single ``except`` clause.

Example
-------
>>> try:
...     raise PolicyNotFoundError("stop-idle")
... except GovernanceError as exc:
...     print(exc)
Policy 'stop-idle' not found
"""
from __future__ import annotations


class GovernanceError(Exception):
    """Base class for every error raised by aumos-resource-governance."""


class ValidationError(GovernanceError, ValueError):
    """Raised when a policy or filter expression fails authoring-time checks.

    Attributes
    ----------
    problems:
        Ordered list of human-readable validation problems.
    """

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        self.problems: list[str] = list(problems or [])
        detail = f": {'; '.join(self.problems)}" if self.problems else ""
        super().__init__(f"{message}{detail}")


class EvaluationError(GovernanceError):
    """Raised when a filter node cannot be decided for a resolved value.

    Attributes
    ----------
    operator:
        The operator being applied, when known.
    field:
        The field path being evaluated, when known.
    """

    def __init__(
        self,
        message: str,
        operator: str | None = None,
        field: str | None = None,
    ) -> None:
        self.operator = operator
        self.field = field
        super().__init__(message)


class ProviderError(GovernanceError):
    """Raised by a resource provider when candidates cannot be fetched."""

    def __init__(self, message: str, resource_type: str | None = None) -> None:
        self.resource_type = resource_type
        super().__init__(message)


class ActionError(GovernanceError):
    """Raised by an action executor when a mutating call fails."""

    def __init__(
        self,
        message: str,
        action: str | None = None,
        resource_ids: list[str] | None = None,
    ) -> None:
        self.action = action
        self.resource_ids: list[str] = list(resource_ids or [])
        super().__init__(message)


class PolicyNotFoundError(GovernanceError, KeyError):
    """Raised when a policy name is not present in the policy store."""

    def __init__(self, policy_name: str) -> None:
        self.policy_name = policy_name
        super().__init__(policy_name)

    def __str__(self) -> str:
        return f"Policy '{self.policy_name}' not found"


class UnsupportedResourceTypeError(GovernanceError):
    """Raised when a policy targets a resource type the engine cannot serve."""

    def __init__(self, resource_type: str) -> None:
        self.resource_type = resource_type
        super().__init__(f"Unsupported resource type: {resource_type}")


class StateWaitTimeoutError(GovernanceError, TimeoutError):
    """Raised when resources do not converge on a target state in time."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Operation timed out after {timeout_seconds:g} s")
