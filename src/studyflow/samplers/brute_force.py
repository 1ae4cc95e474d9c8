"""
A sampler that exhaustively enumerates a finite search space.
"""
from typing import Any, Dict, List, Optional

import numpy as np

from ._transform import grid_values
from .base import BaseSampler
from .._logging import get_logger
from ..core.history import StudyHistory
from ..core.trial import FrozenTrial, TrialState
from ..distributions import BaseDistribution, CategoricalDistribution

logger = get_logger(__name__)


def _domain(distribution: BaseDistribution) -> List[Any]:
    if isinstance(distribution, CategoricalDistribution):
        return list(distribution.choices)
    try:
        return grid_values(distribution)
    except ValueError:
        raise ValueError(
            f"BruteForceSampler requires a finite domain, got {distribution}. "
            f"Use a step for float parameters."
        ) from None


def _matches(trial: FrozenTrial, fixed: Dict[str, Any]) -> bool:
    return all(name in trial.params and trial.params[name] == value for name, value in fixed.items())


class BruteForceSampler(BaseSampler):
    """
    Exhaustive search over a finite search space.

    The search space is discovered from the trials themselves: each time a
    parameter is suggested, the sampler looks at the trials that agree with
    the running trial on the parameters it has already suggested and picks a
    value whose sub-tree of combinations has not been fully explored. Among the
    unexplored values the choice is random, so ``seed`` fixes the search order
    of a single-worker study. Once every combination has been seen, values are
    drawn at random and a warning is logged.

    Categorical parameters, int ranges and stepped float ranges are supported.
    A float range without ``step`` raises ``ValueError``.

    Args:
        seed: Seed for the random number generator.
        avoid_premature_stop: If True, only finished (``COMPLETE`` or
            ``PRUNED``) trials count as explored. Combinations held by running
            trials are then suggested again, which may duplicate work but
            never skips a combination whose trial later fails. By default
            running trials count as explored too.
    """

    def __init__(self, seed: Optional[int] = None, avoid_premature_stop: bool = False):
        self._rng = np.random.RandomState(seed)
        self.avoid_premature_stop = avoid_premature_stop

    def reseed_rng(self) -> None:
        self._rng.seed()

    def _explored_states(self):
        if self.avoid_premature_stop:
            return (TrialState.COMPLETE, TrialState.PRUNED)
        return (TrialState.RUNNING, TrialState.COMPLETE, TrialState.PRUNED)

    def _is_exhausted(self, trials: List[FrozenTrial], fixed: Dict[str, Any]) -> bool:
        """Whether ``trials``, all agreeing on ``fixed``, cover every combination below it."""
        if not trials:
            return False
        if any(set(t.params) <= set(fixed) for t in trials):
            return True
        name = next(n for n in trials[0].params if n not in fixed)
        branches = [t for t in trials if name in t.params]
        for value in _domain(trials[0].distributions[name]):
            subtree = [t for t in branches if t.params[name] == value]
            if not self._is_exhausted(subtree, {**fixed, name: value}):
                return False
        return True

    def sample(self, history: StudyHistory, trial_id: int, param_name: str,
               distribution: BaseDistribution) -> Any:
        domain = _domain(distribution)

        current = history.get_trial(trial_id)
        fixed = {} if current is None else dict(current.params)
        fixed.pop(param_name, None)

        others = [
            t for t in history.get_trials(self._explored_states())
            if t.trial_id != trial_id and param_name in t.params and _matches(t, fixed)
        ]
        unexplored = [
            value for value in domain
            if not self._is_exhausted([t for t in others if t.params[param_name] == value],
                                      {**fixed, param_name: value})
        ]
        if not unexplored:
            logger.warning(
                f"All values of parameter '{param_name}' have been explored in study "
                f"'{history.study_name}'; sampling at random."
            )
            unexplored = domain
        return unexplored[self._rng.randint(len(unexplored))]
