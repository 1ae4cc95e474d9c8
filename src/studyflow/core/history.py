from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .trial import FrozenTrial, TrialState


class StudyDirection(Enum):
    """
    The optimization direction of a study.
    """
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"

    @classmethod
    def from_string(cls, direction: str) -> "StudyDirection":
        for member in cls:
            if member.value == direction:
                return member
        raise ValueError(
            f"Optimization direction must be either 'minimize' or 'maximize', got {direction!r}."
        )


@dataclass
class StudyHistory:
    """
    A read-only snapshot of a study that samplers and pruners decide from.

    Attributes:
        study_name: The name of the study.
        direction: The optimization direction of the study.
        trials: All trials of the study ordered by trial number.
    """
    study_name: str
    direction: StudyDirection
    trials: List[FrozenTrial] = field(default_factory=list)

    @property
    def minimize(self) -> bool:
        return self.direction == StudyDirection.MINIMIZE

    def get_trials(self, states=None) -> List[FrozenTrial]:
        if states is None:
            return list(self.trials)
        return [t for t in self.trials if t.state in states]

    @property
    def complete_trials(self) -> List[FrozenTrial]:
        return self.get_trials((TrialState.COMPLETE,))

    def get_trial(self, trial_id: int) -> Optional[FrozenTrial]:
        for t in self.trials:
            if t.trial_id == trial_id:
                return t
        return None
