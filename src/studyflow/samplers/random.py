"""
A sampler that suggests values completely at random.
"""
from typing import Any, Optional

import numpy as np

from ._transform import from_unit
from .base import BaseSampler
from ..core.history import StudyHistory
from ..distributions import BaseDistribution, CategoricalDistribution


def sample_random(rng: np.random.RandomState, distribution: BaseDistribution) -> Any:
    """Draws one value of ``distribution`` uniformly (log-uniformly for log ranges)."""
    if isinstance(distribution, CategoricalDistribution):
        return distribution.choices[rng.randint(len(distribution.choices))]
    return from_unit(distribution, rng.uniform(0.0, 1.0))


class RandomSampler(BaseSampler):
    """
    A simple sampler that suggests hyperparameters completely at random.

    This sampler is useful for establishing a baseline or for the initial
    startup phase of an optimization process. With a fixed ``seed`` and a
    single worker the sequence of suggestions is reproducible.

    Args:
        seed: Seed for the random number generator.
    """

    def __init__(self, seed: Optional[int] = None):
        self._rng = np.random.RandomState(seed)

    def reseed_rng(self) -> None:
        self._rng.seed()

    def sample(self, history: StudyHistory, trial_id: int, param_name: str,
               distribution: BaseDistribution) -> Any:
        return sample_random(self._rng, distribution)
