"""In-memory provider and executor for offline runs and tests.

An inventory file maps resource types to lists of attribute mappings::

    resources:
      ec2:
        - instance_id: i-0abc
          state: running
          launch_time: "2024-01-15T10:30:00Z"
          cpu_utilization: 1.2
          tags: {Environment: dev}
      s3:
        - name: public-assets
          public_read_acl: true

The ``resources`` wrapper is optional.  Resource type aliases are
accepted as keys.  JSON is a subset of YAML, so ``.json`` files load the
same way.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from aumos_resource_governance.errors import ActionError, ProviderError, ValidationError
from aumos_resource_governance.execution.actions import SIMULATED_TRANSITIONS, simulate_outcome
from aumos_resource_governance.execution.providers import (
    ActionExecutor,
    ActionOutcome,
    ResourceOutcome,
    ResourceProvider,
    ResourceQuery,
)
from aumos_resource_governance.resources.records import ResourceRecord
from aumos_resource_governance.resources.registry import SchemaRegistry, default_registry

logger = logging.getLogger(__name__)

# live lifecycle actions settle into these states
_SETTLED_STATES: dict[str, dict[str, tuple[str, str]]] = {
    "ec2": {
        "stop": ("state", "stopped"),
        "start": ("state", "running"),
        "terminate": ("state", "terminated"),
        "reboot": ("state", "running"),
    },
    "rds": {
        "stop": ("db_instance_status", "stopped"),
        "start": ("db_instance_status", "available"),
        "delete": ("db_instance_status", "deleting"),
    },
    "ebs": {
        "delete": ("state", "deleted"),
        "detach": ("attachment_state", "detached"),
    },
}


class StaticResourceProvider(ResourceProvider):
    """Serves resource records from memory.

    Parameters
    ----------
    inventory:
        Mapping of resource type (or alias) to records or attribute
        mappings.
    registry:
        Registry used to canonicalise resource types.
    """

    def __init__(
        self,
        inventory: Mapping[str, Sequence[Mapping[str, object] | ResourceRecord]] | None = None,
        registry: SchemaRegistry | None = None,
    ) -> None:
        self._registry = registry or default_registry()
        self._records: dict[str, list[ResourceRecord]] = {}
        self._lock = threading.Lock()
        self.queries: list[tuple[str, ResourceQuery | None]] = []
        for resource_type, entries in (inventory or {}).items():
            for entry in entries:
                self.add(resource_type, entry)

    @classmethod
    def from_file(cls, path: str | Path, registry: SchemaRegistry | None = None) -> "StaticResourceProvider":
        """Load an inventory from a YAML or JSON file.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ValidationError
            If the document is not a mapping of resource types to lists.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Inventory file not found: {path}")
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        if isinstance(raw, Mapping) and "resources" in raw:
            raw = raw["resources"] or {}
        if not isinstance(raw, Mapping):
            raise ValidationError("Invalid inventory", [f"{path}: expected a mapping of resource types"])
        for resource_type, entries in raw.items():
            if not isinstance(entries, list):
                raise ValidationError("Invalid inventory", [f"{path}: '{resource_type}' must be a list"])
        provider = cls(raw, registry)
        logger.info("Loaded inventory of %d resources from %s", len(provider), path)
        return provider

    def add(self, resource_type: str, entry: Mapping[str, object] | ResourceRecord) -> ResourceRecord:
        canonical = self._registry.canonical_type(resource_type) or resource_type
        if isinstance(entry, ResourceRecord):
            record = entry
        else:
            record = ResourceRecord.from_mapping(canonical, entry)
        with self._lock:
            self._records.setdefault(canonical, []).append(record)
        return record

    def get(self, resource_type: str, resource_id: str) -> ResourceRecord | None:
        with self._lock:
            for record in self._records.get(resource_type, []):
                if record.resource_id == resource_id:
                    return record
        return None

    def update(self, resource_type: str, resource_id: str, changes: Mapping[str, object]) -> None:
        """Replace the attributes in *changes* on the stored record."""
        with self._lock:
            records = self._records.get(resource_type, [])
            for index, record in enumerate(records):
                if record.resource_id == resource_id:
                    attributes = dict(record.attributes)
                    attributes.update(changes)
                    records[index] = ResourceRecord(record.resource_type, record.resource_id, attributes)
                    return

    def list_resources(self, resource_type: str, query: ResourceQuery | None = None) -> list[ResourceRecord]:
        canonical = self._registry.canonical_type(resource_type)
        if canonical is None:
            raise ProviderError(f"cannot list unknown resource type: {resource_type}", resource_type)
        self.queries.append((canonical, query))
        with self._lock:
            records = list(self._records.get(canonical, []))
        if query is None:
            return records
        return [record for record in records if query.admits(record)]

    def supports(self, resource_type: str) -> bool:
        return self._registry.canonical_type(resource_type) is not None

    def __len__(self) -> int:
        with self._lock:
            return sum(len(records) for records in self._records.values())


@dataclass(frozen=True)
class ExecutedCall:
    resource_type: str
    action: str
    resource_ids: tuple[str, ...]
    settings: Mapping[str, object] = field(default_factory=dict, hash=False)
    dry_run: bool = False


class SimulatedActionExecutor(ActionExecutor):
    """Executor that never reaches a cloud API.

    Dry runs return the synthetic outcome from
    :func:`~aumos_resource_governance.execution.actions.simulate_outcome`.
    Live calls report success and, when a provider is attached, apply
    the settled state and tag changes to its records.

    Parameters
    ----------
    provider:
        Optional provider whose records reflect live actions.
    failing_actions:
        Actions whose calls raise :class:`ActionError`.
    failing_resources:
        Resource ids reported as failed by every live call.
    registry:
        Registry used to decide which actions a resource type supports.
    """

    def __init__(
        self,
        provider: StaticResourceProvider | None = None,
        failing_actions: Sequence[str] = (),
        failing_resources: Sequence[str] = (),
        registry: SchemaRegistry | None = None,
    ) -> None:
        self._provider = provider
        self._failing_actions = frozenset(failing_actions)
        self._failing_resources = frozenset(failing_resources)
        self._registry = registry or default_registry()
        self.calls: list[ExecutedCall] = []

    def supports(self, resource_type: str, action: str) -> bool:
        return self._registry.supports_action(resource_type, action)

    def execute(
        self,
        resource_type: str,
        action: str,
        resource_ids: Sequence[str],
        settings: Mapping[str, object],
        dry_run: bool,
    ) -> ActionOutcome:
        self.calls.append(ExecutedCall(resource_type, action, tuple(resource_ids), dict(settings), dry_run))
        if action in self._failing_actions:
            raise ActionError(f"{action} failed for {len(resource_ids)} resources", action, list(resource_ids))
        if dry_run:
            return simulate_outcome(resource_type, action, resource_ids)

        transition = SIMULATED_TRANSITIONS.get(resource_type, {}).get(action)
        outcomes = []
        for resource_id in resource_ids:
            if resource_id in self._failing_resources:
                outcomes.append(ResourceOutcome(resource_id, success=False, message=f"{action} failed"))
                continue
            self._apply(resource_type, action, resource_id, settings)
            outcomes.append(
                ResourceOutcome(
                    resource_id,
                    message=f"Action {action} completed",
                    previous_state=transition[0] if transition else None,
                    current_state=transition[1] if transition else None,
                )
            )
        return ActionOutcome(action=action, resource_type=resource_type, outcomes=tuple(outcomes))

    def _apply(self, resource_type: str, action: str, resource_id: str, settings: Mapping[str, object]) -> None:
        if self._provider is None:
            return
        settled = _SETTLED_STATES.get(resource_type, {}).get(action)
        if settled is not None:
            self._provider.update(resource_type, resource_id, {settled[0]: settled[1]})
        elif action == "tag":
            record = self._provider.get(resource_type, resource_id)
            tags = record.get("tags") if record is not None else None
            current = dict(tags) if isinstance(tags, Mapping) else {}
            current.update({str(key): str(value) for key, value in _tag_settings(settings).items()})
            self._provider.update(resource_type, resource_id, {"tags": current})



def _tag_settings(settings: Mapping[str, object]) -> Mapping[str, object]:
    """Return the tags of a ``tag`` action.

    Tags are read from a nested ``tags`` mapping, falling back to the
    string-valued settings themselves.
    """
    nested = settings.get("tags")
    if isinstance(nested, Mapping):
        return nested
    return {key: value for key, value in settings.items() if isinstance(value, str)}
