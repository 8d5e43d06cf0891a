"""Policy storage interface and the in-memory implementation.

Example
-------
>>> store = InMemoryPolicyStore()
>>> store.save(Policy(name="stop-idle", resource_type="ec2"))
>>> store.exists("stop-idle")
True
>>> store.get("stop-idle").version
1
"""
from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from aumos_resource_governance.errors import PolicyNotFoundError
from aumos_resource_governance.policies.model import Policy
from aumos_resource_governance.timestamps import utc_now

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "resource-gov"


class PolicyStore(ABC):
    """Keyed policy storage consumed by the execution engine."""

    @abstractmethod
    def get(self, name: str) -> Policy:
        """Return the policy called *name*.

        Raises
        ------
        PolicyNotFoundError
            When no such policy is stored.
        """

    @abstractmethod
    def list(self) -> list[Policy]:
        """Return every stored policy ordered by name."""

    @abstractmethod
    def save(self, policy: Policy) -> None:
        """Insert or replace *policy*."""

    @abstractmethod
    def exists(self, name: str) -> bool: ...

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove *name*; raises :class:`PolicyNotFoundError` when absent."""

    def update_stats(self, name: str, ran_at: datetime) -> Policy:
        """Record a completed run of *name* and persist it.

        The default implementation is a plain read-modify-write;
        implementations shared between threads must override it to make
        the sequence atomic.
        """
        policy = self.get(name)
        _apply_run(policy, ran_at)
        self.save(policy)
        return policy


def _apply_run(policy: Policy, ran_at: datetime) -> None:
    policy.last_run = ran_at
    policy.run_count += 1
    policy.updated_at = ran_at


class InMemoryPolicyStore(PolicyStore):
    """Thread-safe dictionary-backed policy store.

    Stored policies are copied on the way in and out, so callers never
    share mutable state with the store.

    Parameters
    ----------
    policies:
        Optional initial policies, saved in order.
    """

    def __init__(self, policies: Iterable[Policy] | None = None) -> None:
        self._policies: dict[str, Policy] = {}
        self._lock = threading.Lock()
        for policy in policies or ():
            self.save(policy)

    def get(self, name: str) -> Policy:
        with self._lock:
            if name not in self._policies:
                raise PolicyNotFoundError(name)
            return copy.deepcopy(self._policies[name])

    def list(self) -> list[Policy]:
        with self._lock:
            return [copy.deepcopy(self._policies[name]) for name in sorted(self._policies)]

    def save(self, policy: Policy) -> None:
        with self._lock:
            self._save_locked(copy.deepcopy(policy), utc_now())

    def _save_locked(self, policy: Policy, updated_at: datetime) -> None:
        if policy.created_at is None:
            policy.created_at = updated_at
        policy.updated_at = updated_at
        if not policy.created_by:
            policy.created_by = DEFAULT_AUTHOR
        existing = self._policies.get(policy.name)
        policy.version = existing.version + 1 if existing is not None else 1
        self._policies[policy.name] = policy
        logger.debug("Saved policy '%s' (version %d)", policy.name, policy.version)

    def exists(self, name: str) -> bool:
        with self._lock:
            return name in self._policies

    def delete(self, name: str) -> None:
        with self._lock:
            if name not in self._policies:
                raise PolicyNotFoundError(name)
            del self._policies[name]
        logger.info("Deleted policy '%s'", name)

    def update_stats(self, name: str, ran_at: datetime) -> Policy:
        with self._lock:
            if name not in self._policies:
                raise PolicyNotFoundError(name)
            policy = copy.deepcopy(self._policies[name])
            _apply_run(policy, ran_at)
            self._save_locked(policy, ran_at)
            return copy.deepcopy(policy)

    def __len__(self) -> int:
        with self._lock:
            return len(self._policies)
