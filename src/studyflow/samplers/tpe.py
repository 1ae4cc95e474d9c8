"""
A Tree-structured Parzen Estimator (TPE) sampler.
"""
from __future__ import annotations
from typing import Any, List, Optional

import numpy as np
from scipy.stats import gaussian_kde

from ._transform import from_unit, to_unit_array
from .base import BaseSampler
from .random import sample_random
from ..core.history import StudyHistory
from ..core.trial import FrozenTrial
from ..distributions import BaseDistribution, CategoricalDistribution


class TPESampler(BaseSampler):
    """
    A Tree-structured Parzen Estimator (TPE) sampler.

    TPE is a sequential model-based optimization (SMBO) algorithm that models
    the probability of observing good and bad results and proposes new candidates
    based on the ratio of these probabilities (Expected Improvement). Each
    parameter is modelled independently from the completed trials that used it.

    Attributes:
        n_startup_trials (int): The number of random trials to run before using TPE.
        n_ei_candidates (int): The number of candidates to sample for Expected Improvement.
        gamma (float): The fraction of top-performing trials to use as the 'good' set.
    """
    def __init__(self, n_startup_trials: int = 10, n_ei_candidates: int = 24,
                 gamma: float = 0.25, seed: Optional[int] = None):
        if not 0.0 < gamma <= 1.0:
            raise ValueError(f"`gamma` must be in (0, 1], got {gamma}.")
        self.n_startup_trials = n_startup_trials
        self.n_ei_candidates = n_ei_candidates
        self.gamma = gamma
        self._rng = np.random.RandomState(seed)

    def reseed_rng(self) -> None:
        self._rng.seed()

    def sample(self, history: StudyHistory, trial_id: int, param_name: str,
               distribution: BaseDistribution) -> Any:
        """
        Suggests a value based on the TPE algorithm.

        If fewer than `n_startup_trials` completed trials used the parameter, it
        falls back to random sampling.
        """
        trials = [t for t in history.complete_trials if param_name in t.params]
        if len(trials) < self.n_startup_trials or not trials:
            return sample_random(self._rng, distribution)

        # Sort trials by performance
        sorted_trials = sorted(trials, key=lambda t: t.value, reverse=not history.minimize)

        # Split into good and bad trials
        n_good = max(1, int(len(sorted_trials) * self.gamma))
        good_trials = sorted_trials[:n_good]
        bad_trials = sorted_trials[n_good:]

        if isinstance(distribution, CategoricalDistribution):
            return self._sample_categorical(param_name, distribution, good_trials, bad_trials)
        return self._sample_numeric(param_name, distribution, good_trials, bad_trials)

    def _sample_numeric(self, name: str, distribution, good: List[FrozenTrial],
                        bad: List[FrozenTrial]) -> Any:
        good_x = to_unit_array(distribution, [t.params[name] for t in good])
        bad_x = to_unit_array(distribution, [t.params[name] for t in bad])
        good_kde = self._fit_kde(good_x)
        bad_kde = self._fit_kde(bad_x)

        # Generate candidates around the good group where a model exists
        if good_kde is not None:
            candidates = good_kde.resample(self.n_ei_candidates, seed=self._rng)[0]
        else:
            candidates = self._rng.uniform(0.0, 1.0, self.n_ei_candidates)
        candidates = np.clip(candidates, 0.0, 1.0)

        good_density = self._density(good_kde, candidates)
        bad_density = self._density(bad_kde, candidates)
        ei = np.log(np.maximum(good_density, 1e-10)) - np.log(np.maximum(bad_density, 1e-10))
        best = candidates[int(np.argmax(ei))]
        return from_unit(distribution, best)

    def _sample_categorical(self, name: str, distribution: CategoricalDistribution,
                            good: List[FrozenTrial], bad: List[FrozenTrial]) -> Any:
        choices = distribution.choices
        n_choices = len(choices)

        def probabilities(trials):
            counts = np.zeros(n_choices)
            for t in trials:
                counts[int(distribution.to_internal_repr(t.params[name]))] += 1
            # Relative frequency with Laplace smoothing
            return (counts + 1) / (len(trials) + n_choices)

        good_p = probabilities(good)
        bad_p = probabilities(bad)
        candidates = self._rng.choice(n_choices, size=self.n_ei_candidates, p=good_p)
        ei = np.log(good_p[candidates]) - np.log(bad_p[candidates])
        return choices[int(candidates[int(np.argmax(ei))])]

    @staticmethod
    def _fit_kde(values: np.ndarray) -> Optional[gaussian_kde]:
        if len(values) < 2:
            return None
        try:
            return gaussian_kde(values)
        except (np.linalg.LinAlgError, ValueError):
            return None

    @staticmethod
    def _density(kde: Optional[gaussian_kde], points: np.ndarray) -> np.ndarray:
        if kde is None:
            return np.ones_like(points)
        return kde.pdf(points)
