"""Resource records and per-type computed field accessors.

A :class:`ResourceRecord` is the attribute bag a provider returns for one
cloud resource.  Fields that providers do not report directly (tag
counts, ages, derived sizes) are computed on demand from an explicit
accessor table keyed by resource type and field name, so filters can
reference ``age_days`` or ``tag_count`` without the provider having to
precompute them.

Example
-------
>>> record = ResourceRecord("ec2", "i-1", {"state": "running", "tags": {"Name": "web"}})
>>> record.get("tag_count")
1
>>> record.get("STATE")
'running'
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType

from aumos_resource_governance.timestamps import coerce_datetime

logger = logging.getLogger(__name__)

ComputedAccessor = Callable[[Mapping[str, object], datetime], object]

_SECONDS_PER_DAY = 86_400
_BYTES_PER_GB = 1024**3


# ---------------------------------------------------------------------------
# Accessor factories
# ---------------------------------------------------------------------------


def _length_of(key: str) -> ComputedAccessor:
    def accessor(attrs: Mapping[str, object], now: datetime) -> object:
        value = attrs.get(key)
        if value is None:
            return 0
        if isinstance(value, (Mapping, list, tuple, set, str)):
            return len(value)
        return None

    return accessor


def _days_since(key: str) -> ComputedAccessor:
    def accessor(attrs: Mapping[str, object], now: datetime) -> object:
        moment = coerce_datetime(attrs.get(key))
        if moment is None:
            return None
        return int((now - moment).total_seconds() // _SECONDS_PER_DAY)

    return accessor


def _running_days(attrs: Mapping[str, object], now: datetime) -> object:
    if str(attrs.get("state", "")).lower() != "running":
        return 0
    return _days_since("launch_time")(attrs, now)


def _instance_name(attrs: Mapping[str, object], now: datetime) -> object:
    tags = attrs.get("tags")
    if isinstance(tags, Mapping) and tags.get("Name"):
        return tags["Name"]
    return attrs.get("instance_id")


def _size_gb(attrs: Mapping[str, object], now: datetime) -> object:
    size = attrs.get("size_bytes")
    if isinstance(size, bool) or not isinstance(size, (int, float)):
        return None
    return size / _BYTES_PER_GB


def _vpc_config(attrs: Mapping[str, object], now: datetime) -> object:
    return bool(attrs.get("vpc_id"))


def _never_used(attrs: Mapping[str, object], now: datetime) -> object:
    return attrs.get("last_used") is None


def _unused_days(attrs: Mapping[str, object], now: datetime) -> object:
    if attrs.get("instance_id") or str(attrs.get("state", "")).lower() == "in-use":
        return 0
    return _days_since("create_time")(attrs, now)


COMPUTED_ACCESSORS: dict[str, dict[str, ComputedAccessor]] = {
    "ec2": {
        "name": _instance_name,
        "tag_count": _length_of("tags"),
        "running_days": _running_days,
        "age_days": _days_since("launch_time"),
    },
    "s3": {
        "tag_count": _length_of("tags"),
        "size_gb": _size_gb,
        "age_days": _days_since("creation_date"),
    },
    "rds": {
        "age_days": _days_since("instance_create_time"),
    },
    "lambda": {
        "env_var_count": _length_of("environment_variables"),
        "vpc_config": _vpc_config,
        "age_days": _days_since("last_modified"),
        "days_since_last_invocation": _days_since("last_invoked"),
    },
    "ebs": {
        "age_days": _days_since("create_time"),
        "days_since_attachment": _days_since("attach_time"),
        "unused_days": _unused_days,
    },
    "iam-role": {
        "attached_policy_count": _length_of("attached_policies"),
        "inline_policy_count": _length_of("inline_policies"),
        "never_used": _never_used,
        "days_since_last_used": _days_since("last_used"),
        "age_days": _days_since("create_date"),
    },
}

IDENTIFIER_FIELDS: dict[str, str] = {
    "ec2": "instance_id",
    "s3": "name",
    "rds": "db_instance_identifier",
    "lambda": "function_name",
    "ebs": "volume_id",
    "iam-role": "role_name",
}


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResourceRecord:
    """Immutable attribute bag for a single resource.

    Attributes
    ----------
    resource_type:
        Canonical resource type key (``"ec2"``, ``"s3"`` ...).
    resource_id:
        Provider identifier used when dispatching actions.
    attributes:
        Provider-reported attributes.  Wrapped in a read-only mapping.
    """

    resource_type: str
    resource_id: str
    attributes: Mapping[str, object] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @classmethod
    def from_mapping(cls, resource_type: str, data: Mapping[str, object]) -> "ResourceRecord":
        """Build a record from a plain mapping, deriving the identifier.

        The identifier is taken from the type's identifier field, falling
        back to ``id``, ``resource_id`` and ``name``.
        """
        candidates = [IDENTIFIER_FIELDS.get(resource_type, ""), "id", "resource_id", "name"]
        resource_id = next((str(data[key]) for key in candidates if key and data.get(key)), "")
        return cls(resource_type=resource_type, resource_id=resource_id, attributes=data)

    def get(self, name: str, now: datetime | None = None) -> object:
        """Return the value of the top-level field *name* or ``None``.

        Lookup order is exact key, case-insensitive key, then the
        computed accessor registered for this resource type.
        """
        if name in self.attributes:
            return self.attributes[name]
        lowered = name.lower()
        for key, value in self.attributes.items():
            if isinstance(key, str) and key.lower() == lowered:
                return value
        accessor = COMPUTED_ACCESSORS.get(self.resource_type, {}).get(lowered)
        if accessor is None:
            return None
        return accessor(self.attributes, now or datetime.now(timezone.utc))

    def with_attributes(self, extra: Mapping[str, object]) -> "ResourceRecord":
        """Return a new record with *extra* merged underneath the existing attributes."""
        merged = dict(extra)
        merged.update(self.attributes)
        return ResourceRecord(self.resource_type, self.resource_id, merged)

    def to_dict(self) -> dict[str, object]:
        return {
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "attributes": dict(self.attributes),
        }


def resolve_attribute(container: object, name: str, now: datetime | None = None) -> object:
    """Look up *name* on a record or plain mapping; ``None`` when absent."""
    if isinstance(container, ResourceRecord):
        return container.get(name, now)
    if isinstance(container, Mapping):
        if name in container:
            return container[name]
        lowered = name.lower()
        for key, value in container.items():
            if isinstance(key, str) and key.lower() == lowered:
                return value
    return None
