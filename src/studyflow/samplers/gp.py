"""
A Gaussian-process sampler with an expected-improvement acquisition.
"""
from __future__ import annotations
import warnings
from typing import Any, Optional

import numpy as np
from scipy.stats import norm
from sklearn.exceptions import ConvergenceWarning
from sklearn.gaussian_process import GaussianProcessRegressor
from sklearn.gaussian_process.kernels import Matern

from ._transform import from_unit, to_unit_array
from .base import BaseSampler
from .random import sample_random
from ..core.history import StudyHistory
from ..distributions import BaseDistribution, CategoricalDistribution


def expected_improvement(mu: np.ndarray, sigma: np.ndarray, f_best: float, xi: float,
                         minimize: bool) -> np.ndarray:
    """Expected improvement of a Gaussian posterior over the incumbent ``f_best``."""
    sigma = np.maximum(sigma, 1e-12)
    improvement = (f_best - mu - xi) if minimize else (mu - f_best - xi)
    gamma = improvement / sigma
    return improvement * norm.cdf(gamma) + sigma * norm.pdf(gamma)


class GPSampler(BaseSampler):
    """
    Gaussian Process surrogate with expected improvement.

    Each parameter gets its own one-dimensional surrogate fitted on the
    completed trials that used it. Numeric parameters are modelled on the unit
    interval (log-scaled where requested); categorical parameters use their
    choice index.

    Args:
        n_startup_trials: Number of random suggestions before the surrogate is used.
        n_candidates: Number of random candidates scored by the acquisition.
        xi: Exploration margin of expected improvement.
        seed: Seed for the random number generator.
    """

    def __init__(self, n_startup_trials: int = 10, n_candidates: int = 256, xi: float = 0.01,
                 seed: Optional[int] = None):
        self.n_startup_trials = int(n_startup_trials)
        self.n_candidates = int(n_candidates)
        self.xi = xi
        self._rng = np.random.RandomState(seed)

    def reseed_rng(self) -> None:
        self._rng.seed()

    def sample(self, history: StudyHistory, trial_id: int, param_name: str,
               distribution: BaseDistribution) -> Any:
        trials = [t for t in history.complete_trials if param_name in t.params]
        if len(trials) < max(self.n_startup_trials, 2):
            return sample_random(self._rng, distribution)

        y = np.array([t.value for t in trials], dtype=float)
        values = [t.params[param_name] for t in trials]

        if isinstance(distribution, CategoricalDistribution):
            n_choices = len(distribution.choices)
            X = np.array([distribution.to_internal_repr(v) for v in values]) / max(n_choices - 1, 1)
            candidates = np.arange(n_choices) / max(n_choices - 1, 1)
        else:
            X = to_unit_array(distribution, values)
            candidates = self._rng.uniform(0.0, 1.0, self.n_candidates)

        kernel = Matern(length_scale=1.0, nu=2.5)
        gp = GaussianProcessRegressor(
            kernel=kernel, alpha=1e-6, normalize_y=True, n_restarts_optimizer=3,
            random_state=self._rng.randint(2 ** 31 - 1),
        )
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            gp.fit(X.reshape(-1, 1), y)
        mu, sigma = gp.predict(candidates.reshape(-1, 1), return_std=True)

        f_best = float(np.min(y)) if history.minimize else float(np.max(y))
        acq = expected_improvement(mu, sigma, f_best, self.xi, history.minimize)
        best_idx = int(np.argmax(acq))

        if isinstance(distribution, CategoricalDistribution):
            return distribution.choices[best_idx]
        return from_unit(distribution, candidates[best_idx])
