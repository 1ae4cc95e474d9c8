import threading
import warnings
from typing import Any, Dict, Optional

import numpy as np
from scipy.stats import qmc

from ._transform import from_unit
from .base import BaseSampler
from ..core.history import StudyHistory
from ..distributions import BaseDistribution, CategoricalDistribution

_ENGINES = {
    "sobol": qmc.Sobol,
    "halton": qmc.Halton,
}


class QMCSampler(BaseSampler):
    """
    A quasi-Monte Carlo sampler backed by ``scipy.stats.qmc``.

    Trial number ``n`` receives the ``n``-th point of a low-discrepancy
    sequence. Each parameter name owns one coordinate, assigned in the order
    the names are first seen.

    Args:
        qmc_type: Either ``"sobol"`` or ``"halton"``.
        scramble: Whether to scramble the sequence.
        seed: Seed for the scrambling. Ignored when ``scramble`` is False.
    """

    def __init__(self, qmc_type: str = "sobol", scramble: bool = False, seed: Optional[int] = None):
        if qmc_type not in _ENGINES:
            raise ValueError(
                f"Unknown qmc_type: {qmc_type!r}. Choose one of {sorted(_ENGINES)}."
            )
        self.qmc_type = qmc_type
        self.scramble = scramble
        self._seed = seed if seed is not None else np.random.randint(2 ** 31 - 1)
        self._dimensions: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _dimension_of(self, param_name: str) -> int:
        with self._lock:
            if param_name not in self._dimensions:
                self._dimensions[param_name] = len(self._dimensions)
            return self._dimensions[param_name]

    def _point(self, index: int, dimension: int) -> float:
        engine = _ENGINES[self.qmc_type](d=dimension + 1, scramble=self.scramble, seed=self._seed)
        with warnings.catch_warnings():
            # Sobol' balance warnings for a single draw
            warnings.simplefilter("ignore", UserWarning)
            if index:
                engine.fast_forward(index)
            return float(engine.random(1)[0, dimension])

    def sample(self, history: StudyHistory, trial_id: int, param_name: str,
               distribution: BaseDistribution) -> Any:
        trial = history.get_trial(trial_id)
        index = trial.number if trial is not None else len(history.trials)
        u = self._point(index, self._dimension_of(param_name))

        if isinstance(distribution, CategoricalDistribution):
            n_choices = len(distribution.choices)
            return distribution.choices[min(int(u * n_choices), n_choices - 1)]
        return from_unit(distribution, u)
