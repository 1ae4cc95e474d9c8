"""
Defines the base interface for all samplers.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any

from ..core.history import StudyHistory
from ..distributions import BaseDistribution


class BaseSampler(ABC):
    """
    Abstract base class for all samplers.

    A sampler proposes a value for one parameter of a running trial. It is
    called by the trial while the study lock is held and must not write to the
    storage; everything it may look at is in the ``history`` snapshot.
    """

    @abstractmethod
    def sample(self, history: StudyHistory, trial_id: int, param_name: str,
               distribution: BaseDistribution) -> Any:
        """
        Suggest a value for one parameter.

        Args:
            history: The study's trials as visible in storage, the running
                trial included.
            trial_id: The ID of the trial asking for the value.
            param_name: The name of the parameter.
            distribution: The distribution to draw from.

        Returns:
            A value in the external representation of ``distribution``.
        """
        pass

    def reseed_rng(self) -> None:
        """
        Reseed the sampler's random number generator.

        Samplers without internal randomness keep the default no-op.
        """
        pass
