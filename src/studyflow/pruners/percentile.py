import math

import numpy as np

from .base import BasePruner
from ..core.history import StudyHistory


class PercentilePruner(BasePruner):
    """
    A pruner that stops trials whose intermediate results fall behind a percentile.

    At the trial's latest step, the best intermediate value reported so far is
    compared with the given percentile of the values that completed trials
    reported at the same step. "Best" and "behind" follow the study direction.

    Attributes:
        percentile (float): Percentile in [0, 100]. Lower keeps fewer trials.
        n_startup_trials (int): Number of trials to complete before pruning is active.
        n_warmup_steps (int): Minimum number of steps before a trial can be pruned.
        interval_steps (int): Pruning is checked every ``interval_steps`` after the warmup.
        n_min_trials (int): Minimum number of completed trials reporting at the step.
    """
    def __init__(self, percentile: float, n_startup_trials: int = 5, n_warmup_steps: int = 0,
                 interval_steps: int = 1, n_min_trials: int = 1):
        if not 0.0 <= percentile <= 100.0:
            raise ValueError(f"Percentile must be between 0 and 100 inclusive but got {percentile}.")
        if n_startup_trials < 0:
            raise ValueError(f"Number of startup trials cannot be negative but got {n_startup_trials}.")
        if n_warmup_steps < 0:
            raise ValueError(f"Number of warmup steps cannot be negative but got {n_warmup_steps}.")
        if interval_steps < 1:
            raise ValueError(f"Pruning interval steps must be at least 1 but got {interval_steps}.")
        if n_min_trials < 1:
            raise ValueError(f"Number of trials for pruning must be at least 1 but got {n_min_trials}.")

        self.percentile = percentile
        self.n_startup_trials = n_startup_trials
        self.n_warmup_steps = n_warmup_steps
        self.interval_steps = interval_steps
        self.n_min_trials = n_min_trials

    def should_prune(self, history: StudyHistory, trial_id: int) -> bool:
        trial = history.get_trial(trial_id)
        if trial is None:
            return False
        step = trial.last_step
        if step is None:
            return False

        # Do not prune during startup or warmup phases
        completed_trials = history.complete_trials
        if len(completed_trials) < self.n_startup_trials or step < self.n_warmup_steps:
            return False
        if (step - self.n_warmup_steps) % self.interval_steps != 0:
            return False

        step_values = [
            t.intermediate_values[step] for t in completed_trials if step in t.intermediate_values
        ]
        step_values = [v for v in step_values if not math.isnan(v)]
        if len(step_values) < self.n_min_trials:
            return False

        own_values = [v for s, v in trial.intermediate_values.items() if s <= step and not math.isnan(v)]
        if not own_values:
            return True

        # Prune if the trial's best value so far is worse than the percentile
        if history.minimize:
            best = min(own_values)
            return best > np.percentile(step_values, self.percentile)
        best = max(own_values)
        return best < np.percentile(step_values, 100.0 - self.percentile)


class MedianPruner(PercentilePruner):
    """
    A pruner that stops trials performing worse than the median of previous trials.

    Attributes:
        n_startup_trials (int): Number of trials to complete before pruning is active.
        n_warmup_steps (int): Minimum number of steps before a trial can be pruned.
        interval_steps (int): Pruning is checked every ``interval_steps`` after the warmup.
        n_min_trials (int): Minimum number of completed trials reporting at the step.
    """
    def __init__(self, n_startup_trials: int = 5, n_warmup_steps: int = 0, interval_steps: int = 1,
                 n_min_trials: int = 1):
        super().__init__(50.0, n_startup_trials, n_warmup_steps, interval_steps, n_min_trials)
