"""Confirmation of destructive live actions.

The engine asks a :class:`Confirmer` before dispatching a destructive
action outside dry-run mode.  A declined confirmation skips that action
only; the run continues with the next one.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from rich.console import Console
from rich.prompt import Confirm

logger = logging.getLogger(__name__)


class Confirmer(ABC):
    @abstractmethod
    def confirm(self, policy_name: str, action: str, resource_count: int) -> bool:
        """Return ``True`` to proceed with *action* on *resource_count* resources."""


class ConsoleConfirmer(Confirmer):
    """Asks on the terminal with a rich ``[y/n]`` prompt; defaults to no."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def confirm(self, policy_name: str, action: str, resource_count: int) -> bool:
        return Confirm.ask(
            f"[bold yellow]About to execute '{action}' on {resource_count} resources "
            f"(policy '{policy_name}'). Continue?[/bold yellow]",
            console=self._console,
            default=False,
        )


class StaticConfirmer(Confirmer):
    """Gives the same answer every time and remembers what it was asked.

    Used for ``--yes`` on the command line and in tests.
    """

    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.requests: list[tuple[str, str, int]] = []

    def confirm(self, policy_name: str, action: str, resource_count: int) -> bool:
        self.requests.append((policy_name, action, resource_count))
        logger.debug("Confirmation for '%s' on %d resources: %s", action, resource_count, self.answer)
        return self.answer
