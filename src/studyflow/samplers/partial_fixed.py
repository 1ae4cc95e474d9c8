from typing import Any, Dict

from .base import BaseSampler
from .._logging import get_logger
from ..core.history import StudyHistory
from ..distributions import BaseDistribution

logger = get_logger(__name__)


class PartialFixedSampler(BaseSampler):
    """
    A sampler that pins some parameters to fixed values.

    Parameters listed in ``fixed_params`` always get their fixed value; every
    other parameter is delegated to ``base_sampler``.

    Args:
        fixed_params: Parameter name to fixed value.
        base_sampler: The sampler used for the remaining parameters.
    """

    def __init__(self, fixed_params: Dict[str, Any], base_sampler: BaseSampler):
        self.fixed_params = dict(fixed_params)
        self.base_sampler = base_sampler

    def reseed_rng(self) -> None:
        self.base_sampler.reseed_rng()

    def sample(self, history: StudyHistory, trial_id: int, param_name: str,
               distribution: BaseDistribution) -> Any:
        if param_name not in self.fixed_params:
            return self.base_sampler.sample(history, trial_id, param_name, distribution)

        value = self.fixed_params[param_name]
        if not distribution.contains(distribution.to_internal_repr(value)):
            logger.warning(
                f"Fixed parameter '{param_name}' with value {value!r} is out of range "
                f"for distribution {distribution}."
            )
        return value
