"""Status Transition Tables.

Resources with a clinical workflow move between statuses only along an
explicit table of allowed transitions, kept as data so the legal set can be
read in one place.
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Tuple, TypeVar

from clinical_fhir.core.exceptions import BindingError, TransitionError
from clinical_fhir.utils.logging import get_logger

logger = get_logger(__name__)

StateT = TypeVar("StateT", bound=Enum)


class TransitionTable:
    """Map from a current state to the states it may move to."""

    def __init__(
        self,
        name: str,
        state_type: type,
        transitions: Mapping[StateT, Iterable[StateT]],
        wildcard_states: Iterable[StateT] = (),
    ):
        """Initialize transition table.

        Args:
            name: Workflow name used in errors, e.g. ``Encounter``
            state_type: Enum of all states
            transitions: State to the states reachable from it in one step
            wildcard_states: States from which every other state is reachable
        """
        self.name = name
        self.state_type = state_type
        wildcards = frozenset(wildcard_states)
        every_state = frozenset(state_type)
        self._state_transitions: Dict[StateT, FrozenSet[StateT]] = {}
        for state in state_type:
            if state in wildcards:
                self._state_transitions[state] = every_state - {state}
            else:
                self._state_transitions[state] = frozenset(transitions.get(state, ()))

    def coerce(self, state: object) -> Enum:
        """Convert a code string to the state enum."""
        try:
            return self.state_type(getattr(state, "value", state))
        except ValueError:
            raise BindingError(f"{state!r} is not a valid {self.name} status", path="status") from None

    def allows(self, current: object, requested: object) -> bool:
        """Return True when ``current -> requested`` is in the table."""
        return self.coerce(requested) in self._state_transitions[self.coerce(current)]

    def check(self, current: object, requested: object) -> Enum:
        """Validate a transition and return the requested state.

        Raises:
            TransitionError: If the transition is not allowed
        """
        current_state = self.coerce(current)
        requested_state = self.coerce(requested)
        if requested_state not in self._state_transitions[current_state]:
            raise TransitionError(current_state, requested_state, machine=self.name)
        logger.debug(
            "status_transition",
            workflow=self.name,
            from_state=current_state.value,
            to_state=requested_state.value,
        )
        return requested_state

    def allowed_from(self, current: object) -> Tuple[Enum, ...]:
        """States reachable in one step, in enum order."""
        reachable = self._state_transitions[self.coerce(current)]
        return tuple(state for state in self.state_type if state in reachable)

    def is_terminal(self, state: object) -> bool:
        """Return True when no transition leaves ``state``."""
        return not self._state_transitions[self.coerce(state)]

    def as_dict(self) -> Dict[str, Tuple[str, ...]]:
        """Table as plain codes, for documentation and auditing."""
        return {
            state.value: tuple(target.value for target in self.allowed_from(state))
            for state in self.state_type
        }

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"TransitionTable({self.name!r}, {len(self._state_transitions)} states)"

