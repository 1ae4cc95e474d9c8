import keyword
import numbers
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Sequence

import numpy as np

from .distributions import (
    BaseDistribution,
    CategoricalDistribution,
    FloatDistribution,
    IntDistribution,
)
from ._logging import get_logger

if TYPE_CHECKING:
    from .core.trial import Trial

logger = get_logger(__name__)


def _check_name(name: str) -> None:
    if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
        raise ValueError(f"Parameter name {name!r} must be a valid Python identifier.")
    if name.startswith("_"):
        raise ValueError(f"Parameter name {name!r} must not start with an underscore.")


def _distribution_from_value(name: str, value: Any) -> BaseDistribution:
    if isinstance(value, BaseDistribution):
        return value
    if not isinstance(value, (list, tuple)):
        raise ValueError(
            f"Search space entry '{name}' must be a (low, high) pair, a list of choices "
            f"or a distribution, got {value!r}."
        )
    first = value[0] if len(value) else None
    is_range = (
        len(value) == 2
        and isinstance(first, numbers.Real)
        and not isinstance(first, bool)
    )
    if not is_range:
        return CategoricalDistribution(list(value))

    low, high = value
    if isinstance(first, numbers.Integral):
        if isinstance(high, bool) or not isinstance(high, numbers.Integral):
            raise ValueError(
                f"Search space entry '{name}' starts with an integer, so both bounds must be "
                f"integers, got {value!r}."
            )
        return IntDistribution(int(low), int(high))
    if any(isinstance(b, np.floating) and b.dtype.itemsize < 8 for b in (low, high)):
        logger.warning(
            f"Converting the bounds of parameter '{name}' "
            f"({type(low).__name__}, {type(high).__name__}) to float64."
        )
    return FloatDistribution(float(low), float(high))


class SearchSpace:
    """
    Defines the hyperparameter search space for an optimization study.

    This class provides methods to add integer, floating point and categorical
    hyperparameters, and suggests all of them for a trial in insertion order.
    Parameter names must be valid Python identifiers so that they can be passed
    to an objective as keyword arguments.
    """
    def __init__(self):
        self.params: Dict[str, BaseDistribution] = {}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SearchSpace":
        """
        Builds a search space from a plain mapping.

        Each value is one of:

        - a 2-element ``(low, high)`` pair: an integer range if ``low`` is an
          int, a real range if it is a float;
        - a list or tuple of any other length, or whose first element is a
          bool or str: categorical choices;
        - a distribution object, for step or log control.

        Note that a 2-element list of integers is read as a range, not as two
        categorical choices.
        """
        space = cls()
        for name, value in mapping.items():
            space.add(name, _distribution_from_value(name, value))
        return space

    def add(self, name: str, distribution: BaseDistribution) -> "SearchSpace":
        _check_name(name)
        self.params[name] = distribution
        return self

    def add_float(self, name: str, low: float, high: float, step: Optional[float] = None,
                  log: bool = False) -> "SearchSpace":
        """
        Adds a continuous hyperparameter.

        Args:
            name (str): The name of the hyperparameter.
            low (float): The lower bound of the distribution.
            high (float): The upper bound of the distribution.
            step (float): Optional discretization step.
            log (bool): If True, sample from a log-uniform distribution.
        """
        return self.add(name, FloatDistribution(low, high, log=log, step=step))

    def add_int(self, name: str, low: int, high: int, step: int = 1, log: bool = False) -> "SearchSpace":
        """
        Adds a discrete hyperparameter that takes integer values.

        Args:
            name (str): The name of the hyperparameter.
            low (int): The lower bound of the range (inclusive).
            high (int): The upper bound of the range (inclusive).
        """
        return self.add(name, IntDistribution(low, high, log=log, step=step))

    def add_categorical(self, name: str, choices: Sequence[Any]) -> "SearchSpace":
        """
        Adds a categorical hyperparameter from a list of choices.

        Args:
            name (str): The name of the hyperparameter.
            choices (list): A list of possible values for the hyperparameter.
        """
        return self.add(name, CategoricalDistribution(choices))

    @property
    def names(self) -> List[str]:
        return list(self.params)

    def suggest_all(self, trial: "Trial") -> Dict[str, Any]:
        """Suggests every parameter through ``trial`` and returns the values by name."""
        values = {}
        for name, dist in self.params.items():
            if isinstance(dist, IntDistribution):
                values[name] = trial.suggest_int(name, dist.low, dist.high, step=dist.step, log=dist.log)
            elif isinstance(dist, FloatDistribution):
                values[name] = trial.suggest_float(name, dist.low, dist.high, step=dist.step, log=dist.log)
            else:
                values[name] = trial.suggest_categorical(name, list(dist.choices))
        return values

    def __len__(self) -> int:
        return len(self.params)

    def __contains__(self, name: object) -> bool:
        return name in self.params

    def __iter__(self) -> Iterator[str]:
        return iter(self.params)

    def __repr__(self) -> str:
        return f"SearchSpace({self.params!r})"
