"""
Table-driven status machine shared by booking requests and bookings.

Each machine declares its transitions explicitly. A trigger is accepted
only if a transition exists from the current status, and only for the
actors listed on it. Anything attempted from a terminal status is a
conflict, never a silent no-op.

Usage:
    sm = BookingRequestStateMachine(BookingRequestStatus.PENDING)
    sm.transition(RequestTrigger.ACCEPT, Actor.PROVIDER)
    assert sm.current_state == BookingRequestStatus.ACCEPTED
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import ClassVar, Generic, Optional, TypeVar

from booking_engine.errors import AuthorizationError, ConflictError
from booking_engine.utils import utcnow

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Enum)
T = TypeVar("T", bound=Enum)


class Actor(str, Enum):
    """Who is performing a transition, relative to the entity."""
    PROVIDER = "provider"
    REQUESTER = "requester"
    OPERATOR = "operator"
    SYSTEM = "system"


@dataclass(frozen=True)
class Transition(Generic[S, T]):
    """A single valid status transition."""
    from_state: S
    to_state: S
    trigger: T
    actors: frozenset[Actor]


@dataclass
class StateEntry(Generic[S, T]):
    """Recorded history entry for a status visit."""
    state: S
    entered_at: datetime
    trigger: Optional[T] = None
    actor: Optional[Actor] = None


class StatusMachine(Generic[S, T]):
    """
    Deterministic status machine over a declared transition table.

    Subclasses set ``TRANSITIONS``, ``TERMINAL_STATES`` and ``ENTITY``.
    """

    ENTITY: ClassVar[str] = "entity"
    TRANSITIONS: ClassVar[list] = []
    TERMINAL_STATES: ClassVar[frozenset] = frozenset()

    def __init__(self, state: S) -> None:
        self._current_state = state
        self._history: list[StateEntry[S, T]] = [
            StateEntry(state=state, entered_at=utcnow())
        ]

    @property
    def current_state(self) -> S:
        return self._current_state

    def is_terminal(self) -> bool:
        return self._current_state in self.TERMINAL_STATES

    def resolve(self, trigger: T, actor: Actor) -> Transition[S, T]:
        """
        Find the transition for ``trigger`` without applying it.

        Raises:
            ConflictError: From a terminal status, or no such transition.
            AuthorizationError: The transition exists but not for ``actor``.
        """
        if self.is_terminal():
            raise ConflictError(
                f"{self.ENTITY} is already '{self._current_state.value}'; "
                f"cannot apply '{trigger.value}'"
            )
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                if actor not in t.actors:
                    allowed = sorted(a.value for a in t.actors)
                    raise AuthorizationError(
                        f"'{trigger.value}' on a {self.ENTITY} is reserved for {allowed}; "
                        f"got '{actor.value}'"
                    )
                return t

        valid = [t.value for t in self.get_valid_triggers()]
        raise ConflictError(
            f"No valid transition for {self.ENTITY} from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def transition(self, trigger: T, actor: Actor) -> S:
        """
        Execute a status transition.

        Returns:
            The new status.
        """
        t = self.resolve(trigger, actor)
        old_state = self._current_state
        self._current_state = t.to_state
        self._history.append(StateEntry(
            state=t.to_state,
            entered_at=utcnow(),
            trigger=trigger,
            actor=actor,
        ))
        logger.debug(
            "%s transition: %s -> %s (trigger: %s, actor: %s)",
            self.ENTITY, old_state.value, t.to_state.value, trigger.value, actor.value,
        )
        return t.to_state

    def get_valid_triggers(self) -> list[T]:
        """Return all triggers valid from the current status."""
        if self.is_terminal():
            return []
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry[S, T]]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of status names visited."""
        return [entry.state.value for entry in self._history]
