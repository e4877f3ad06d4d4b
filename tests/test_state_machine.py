from __future__ import annotations

import pytest

from drhub.domain.state_machine import InvalidTransitionError, StateMachine
from drhub.domain.states import ActionProgress


class TestActionProgressTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (ActionProgress.INITIAL, ActionProgress.IN_PROGRESS),
            (ActionProgress.IN_PROGRESS, ActionProgress.FINISHED),
            (ActionProgress.IN_PROGRESS, ActionProgress.INITIAL),
        ],
    )
    def test_allowed(self, current: ActionProgress, target: ActionProgress) -> None:
        assert StateMachine().transition(current, target) == target

    @pytest.mark.parametrize(
        "current,target",
        [
            (ActionProgress.INITIAL, ActionProgress.FINISHED),
            (ActionProgress.IN_PROGRESS, ActionProgress.IN_PROGRESS),
            (ActionProgress.FINISHED, ActionProgress.INITIAL),
            (ActionProgress.FINISHED, ActionProgress.IN_PROGRESS),
        ],
    )
    def test_rejected(self, current: ActionProgress, target: ActionProgress) -> None:
        with pytest.raises(InvalidTransitionError, match="Invalid transition"):
            StateMachine().transition(current, target)

    def test_invalid_transition_is_a_value_error(self) -> None:
        assert issubclass(InvalidTransitionError, ValueError)
