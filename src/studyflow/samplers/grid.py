import itertools
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from .base import BaseSampler
from .._logging import get_logger
from ..core.history import StudyHistory
from ..distributions import BaseDistribution

logger = get_logger(__name__)


class GridSampler(BaseSampler):
    """
    A sampler that walks through every combination of explicit candidate values.

    The grid is the Cartesian product of the candidates of each parameter,
    visited in an order shuffled once by ``seed``. Each trial is bound to one
    grid point the first time it asks for a value. After the whole grid has
    been handed out, the walk starts over.

    Args:
        search_space: Parameter name to the list of candidate values.
        seed: Seed for the shuffling of the grid.
    """

    def __init__(self, search_space: Mapping[str, Sequence[Any]], seed: Optional[int] = None):
        for name, values in search_space.items():
            if len(values) == 0:
                raise ValueError(f"The grid of parameter '{name}' is empty.")
        self._param_names: List[str] = sorted(search_space)
        self._search_space = {name: list(search_space[name]) for name in self._param_names}
        self._grid = list(itertools.product(*(self._search_space[n] for n in self._param_names)))
        self._rng = np.random.RandomState(seed)
        self._order = self._rng.permutation(len(self._grid))
        self._assigned: Dict[int, int] = {}
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    def n_grid_points(self) -> int:
        return len(self._grid)

    def is_exhausted(self) -> bool:
        with self._lock:
            return self._cursor >= len(self._grid)

    def sample(self, history: StudyHistory, trial_id: int, param_name: str,
               distribution: BaseDistribution) -> Any:
        if param_name not in self._search_space:
            raise ValueError(
                f"The parameter '{param_name}' is not in the grid search space "
                f"{self._param_names}."
            )
        with self._lock:
            if trial_id not in self._assigned:
                if self._cursor == len(self._grid):
                    logger.warning("All grid points have been sampled; restarting the grid.")
                position = self._cursor % len(self._grid)
                self._assigned[trial_id] = int(self._order[position])
                self._cursor = position + 1
            grid_id = self._assigned[trial_id]

        value = self._grid[grid_id][self._param_names.index(param_name)]
        if not distribution.contains(distribution.to_internal_repr(value)):
            logger.warning(
                f"The grid value {value!r} of parameter '{param_name}' is outside of {distribution}."
            )
        return value
