import math
from typing import List, Optional

from .base import BasePruner
from ..core.history import StudyHistory
from ..core.trial import FrozenTrial


def _rung_value(trial: FrozenTrial, rung_step: int) -> Optional[float]:
    """The value a trial reported when it first reached ``rung_step``."""
    steps = [s for s in trial.intermediate_values if s >= rung_step]
    if not steps:
        return None
    return trial.intermediate_values[min(steps)]


class SuccessiveHalvingPruner(BasePruner):
    """
    Asynchronous Successive Halving Algorithm (ASHA) pruner.

    ASHA is an aggressive early-stopping algorithm that promotes promising trials
    to higher "rungs" of evaluation (e.g., more training epochs) while stopping
    underperforming ones. Rung ``k`` sits at step
    ``min_resource * reduction_factor ** (min_early_stopping_rate + k)``; a trial
    reaching a rung survives only if it is in the top ``1 / reduction_factor`` of
    all trials that reached the same rung.

    Attributes:
        min_resource (int): The minimum resource (e.g., epochs) allocated to a trial.
        reduction_factor (int): The factor by which the number of trials is reduced at each rung.
        min_early_stopping_rate (int): Skips the lowest rungs.
    """
    def __init__(self, min_resource: int = 1, reduction_factor: int = 3,
                 min_early_stopping_rate: int = 0):
        if min_resource < 1:
            raise ValueError(f"`min_resource` must be at least 1 but got {min_resource}.")
        if reduction_factor < 2:
            raise ValueError(f"`reduction_factor` must be at least 2 but got {reduction_factor}.")
        if min_early_stopping_rate < 0:
            raise ValueError(
                f"`min_early_stopping_rate` cannot be negative but got {min_early_stopping_rate}."
            )
        self.min_resource = min_resource
        self.reduction_factor = reduction_factor
        self.min_early_stopping_rate = min_early_stopping_rate

    def rung_step(self, rung: int) -> int:
        return self.min_resource * self.reduction_factor ** (self.min_early_stopping_rate + rung)

    def should_prune(self, history: StudyHistory, trial_id: int) -> bool:
        trial = history.get_trial(trial_id)
        if trial is None or trial.last_step is None:
            return False

        # Find the highest rung the trial has reached
        step = trial.last_step
        rung = 0
        if step < self.rung_step(rung):
            return False
        while step >= self.rung_step(rung + 1):
            rung += 1
        rung_step = self.rung_step(rung)

        value = _rung_value(trial, rung_step)
        if value is None or math.isnan(value):
            return True

        competing: List[float] = []
        for t in history.trials:
            v = _rung_value(t, rung_step)
            if v is not None and not math.isnan(v):
                competing.append(v)

        # The first trials at a rung only survive by beating every competitor.
        promotable_idx = max(len(competing) // self.reduction_factor - 1, 0)
        competing.sort()
        if history.minimize:
            return value > competing[promotable_idx]
        return value < competing[-(promotable_idx + 1)]
