from __future__ import annotations

from drhub.domain.states import ALLOWED_TRANSITIONS, ActionProgress


class InvalidTransitionError(ValueError):
    pass


class StateMachine:
    def transition(self, current: ActionProgress, target: ActionProgress) -> ActionProgress:
        allowed = ALLOWED_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise InvalidTransitionError(f"Invalid transition {current.value} -> {target.value}")
        return target
