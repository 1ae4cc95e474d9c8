"""
A CMA-ES sampler backed by the ``cma`` package.
"""
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import cma
import numpy as np

from ._transform import from_unit, to_unit
from .base import BaseSampler
from .random import RandomSampler
from .._logging import get_logger
from ..core.history import StudyHistory
from ..core.trial import FrozenTrial, TrialState
from ..distributions import BaseDistribution, CategoricalDistribution

logger = get_logger(__name__)


@dataclass
class _CmaState:
    """The evolution strategy of one study and the candidates it handed out."""
    space: Dict[str, BaseDistribution]
    es: cma.CMAEvolutionStrategy
    pending: Dict[int, Tuple[int, np.ndarray]] = field(default_factory=dict)
    completed: List[Tuple[np.ndarray, float]] = field(default_factory=list)
    restarts: int = 0


def _relative_search_space(trials: List[FrozenTrial]) -> Dict[str, BaseDistribution]:
    """The numeric parameters every trial shares with identical distributions."""
    space: Optional[Dict[str, BaseDistribution]] = None
    for trial in trials:
        numeric = {
            name: dist for name, dist in trial.distributions.items()
            if not isinstance(dist, CategoricalDistribution) and not dist.single()
        }
        if space is None:
            space = numeric
        else:
            space = {name: dist for name, dist in space.items() if numeric.get(name) == dist}
    return dict(sorted((space or {}).items()))


class CmaEsSampler(BaseSampler):
    """
    Covariance Matrix Adaptation Evolution Strategy.

    The numeric parameters shared by all completed trials form the search
    space of a single evolution strategy per study, run on the unit cube
    (log-scaled where requested). Each trial receives one candidate from
    ``ask``; once a full population of candidates has completed, their
    values are passed to ``tell``. Categorical parameters, parameters outside
    the shared space and all parameters of the first ``n_startup_trials``
    trials are drawn by ``independent_sampler``. CMA-ES needs at least two
    numeric dimensions; smaller spaces are sampled independently.

    Args:
        x0: Initial mean by parameter name. Defaults to the center of each range.
        sigma0: Initial step size on the unit cube. Defaults to 1/6.
        n_startup_trials: Number of completed trials before CMA-ES is used.
        independent_sampler: Sampler for parameters outside the CMA-ES space.
            Defaults to a :class:`RandomSampler` with the same seed.
        seed: Seed for the random number generators.
        popsize: Population size. Defaults to the ``cma`` default, ``4 + 3 ln(n)``.
        use_separable_cma: Restrict the covariance matrix to its diagonal.
        warn_independent_sampling: Log a warning when a parameter is sampled by
            ``independent_sampler`` after the startup trials.
    """

    def __init__(self,
                 x0: Optional[Dict[str, Any]] = None,
                 sigma0: Optional[float] = None,
                 n_startup_trials: int = 1,
                 independent_sampler: Optional[BaseSampler] = None,
                 seed: Optional[int] = None,
                 popsize: Optional[int] = None,
                 use_separable_cma: bool = False,
                 warn_independent_sampling: bool = True):
        if sigma0 is not None and sigma0 <= 0:
            raise ValueError(f"`sigma0` must be positive, got {sigma0}.")
        if popsize is not None and popsize < 2:
            raise ValueError(f"`popsize` must be at least 2, got {popsize}.")
        self.x0 = dict(x0 or {})
        self.sigma0 = 1.0 / 6.0 if sigma0 is None else float(sigma0)
        self.n_startup_trials = int(n_startup_trials)
        self.popsize = popsize
        self.use_separable_cma = use_separable_cma
        self.warn_independent_sampling = warn_independent_sampling
        self._independent_sampler = independent_sampler or RandomSampler(seed=seed)
        self._rng = np.random.RandomState(seed)
        self._states: Dict[str, _CmaState] = {}
        self._lock = threading.Lock()

    def reseed_rng(self) -> None:
        self._rng.seed()
        self._independent_sampler.reseed_rng()

    def _init_es(self, space: Dict[str, BaseDistribution]) -> cma.CMAEvolutionStrategy:
        mean = [
            to_unit(dist, self.x0[name]) if name in self.x0 else 0.5
            for name, dist in space.items()
        ]
        opts = cma.CMAOptions()
        opts.set("seed", self._rng.randint(1, 2 ** 31 - 1))
        opts.set("bounds", [0.0, 1.0])
        opts.set("verbose", -9)
        opts.set("verb_log", 0)
        if self.popsize is not None:
            opts.set("popsize", self.popsize)
        if self.use_separable_cma:
            opts.set("CMA_diagonal", True)
        return cma.CMAEvolutionStrategy(np.clip(mean, 0.0, 1.0), self.sigma0, inopts=opts)

    def _state_for(self, history: StudyHistory, space: Dict[str, BaseDistribution]) -> _CmaState:
        state = self._states.get(history.study_name)
        if state is None or state.space != space:
            if state is not None:
                logger.info(f"The search space of study '{history.study_name}' changed; "
                            f"restarting CMA-ES.")
            state = _CmaState(space=space, es=self._init_es(space))
            self._states[history.study_name] = state
        return state

    def _tell_finished(self, state: _CmaState, history: StudyHistory) -> None:
        for trial_id in list(state.pending):
            trial = history.get_trial(trial_id)
            if trial is None or trial.state == TrialState.RUNNING:
                continue
            restart, x = state.pending.pop(trial_id)
            if trial.state == TrialState.COMPLETE and restart == state.restarts:
                state.completed.append((x, trial.value if history.minimize else -trial.value))

        # tell() must alternate with ask(); a second full population waits for the next call
        popsize = state.es.popsize
        if len(state.completed) >= popsize:
            batch, state.completed = state.completed[:popsize], state.completed[popsize:]
            state.es.tell([x for x, _ in batch], [value for _, value in batch])
            if state.es.stop():
                logger.info(f"CMA-ES stopped with {dict(state.es.stop())}; restarting.")
                state.es = self._init_es(state.space)
                state.completed = []
                state.restarts += 1

    def sample(self, history: StudyHistory, trial_id: int, param_name: str,
               distribution: BaseDistribution) -> Any:
        complete = history.complete_trials
        if len(complete) < max(self.n_startup_trials, 1):
            return self._independent_sampler.sample(history, trial_id, param_name, distribution)

        space = _relative_search_space(complete)
        if len(space) < 2 or space.get(param_name) != distribution:
            if self.warn_independent_sampling:
                logger.warning(
                    f"The parameter '{param_name}' of trial {trial_id} is outside of the CMA-ES "
                    f"search space; it is sampled by {type(self._independent_sampler).__name__}."
                )
            return self._independent_sampler.sample(history, trial_id, param_name, distribution)

        with self._lock:
            state = self._state_for(history, space)
            if trial_id not in state.pending:
                self._tell_finished(state, history)
                state.pending[trial_id] = (state.restarts, np.asarray(state.es.ask(1)[0], dtype=float))
            _, x = state.pending[trial_id]
        return from_unit(distribution, x[list(space).index(param_name)])
