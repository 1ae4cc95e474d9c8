"""
Parameter distributions.

A distribution describes the set a single hyperparameter is drawn from. Every
distribution can convert between the value handed to the objective (the
external representation) and a float used by storages and samplers (the
internal representation).
"""
from __future__ import annotations

import decimal
import json
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from ._logging import get_logger

logger = get_logger(__name__)

CategoricalChoiceType = Union[bool, int, float, str]


class BaseDistribution(ABC):
    """Abstract base class for parameter distributions."""

    @abstractmethod
    def to_external_repr(self, internal_value: float) -> Any:
        pass

    @abstractmethod
    def to_internal_repr(self, external_value: Any) -> float:
        pass

    @abstractmethod
    def contains(self, internal_value: float) -> bool:
        """Returns True if the internal value lies in the distribution's domain."""
        pass

    def single(self) -> bool:
        """Returns True if the distribution holds exactly one value."""
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": type(self).__name__, "attributes": dict(self.__dict__)}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BaseDistribution):
            return NotImplemented
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self) -> int:
        return hash((type(self).__name__,) + tuple(sorted(
            (k, tuple(v) if isinstance(v, list) else v) for k, v in self.__dict__.items()
        )))

    def __repr__(self) -> str:
        kwargs = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"{type(self).__name__}({kwargs})"


def _adjust_high(low, high, step):
    """Lowers ``high`` onto the grid ``low + k * step``."""
    d_high = decimal.Decimal(str(high))
    d_low = decimal.Decimal(str(low))
    d_step = decimal.Decimal(str(step))
    r = d_high - d_low
    if r % d_step != decimal.Decimal("0"):
        adjusted = float((r // d_step) * d_step + d_low)
        logger.warning(
            f"The range [{low}, {high}] is not divisible by step={step}. "
            f"The upper bound is adjusted to {adjusted}."
        )
        return adjusted
    return high


class FloatDistribution(BaseDistribution):
    """
    A real-valued range ``[low, high]``.

    Args:
        low: Lower endpoint, inclusive.
        high: Upper endpoint, inclusive.
        log: Sample in the log domain. Requires ``low > 0``.
        step: Discretization step. Cannot be combined with ``log``.
    """

    def __init__(self, low: float, high: float, log: bool = False, step: Optional[float] = None):
        if log and step is not None:
            raise ValueError(
                f"The parameters `step` and `log` cannot be used at the same time "
                f"(got step={step}, log=True)."
            )
        if low > high:
            raise ValueError(f"`low <= high` must hold, but got low={low} and high={high}.")
        if log and low <= 0.0:
            raise ValueError(f"`low > 0` must hold for a log distribution, but got low={low}.")
        if step is not None and step <= 0:
            raise ValueError(f"`step > 0` must hold, but got step={step}.")

        if step is not None:
            high = _adjust_high(low, high, step)
            step = float(step)

        self.low = float(low)
        self.high = float(high)
        self.log = bool(log)
        self.step = step

    def to_external_repr(self, internal_value: float) -> float:
        return float(internal_value)

    def to_internal_repr(self, external_value: Any) -> float:
        try:
            value = float(external_value)
        except (ValueError, TypeError) as e:
            raise ValueError(f"'{external_value}' is not a valid float value.") from e
        if math.isnan(value):
            raise ValueError(f"'{external_value}' is NaN, which is not a valid parameter value.")
        return value

    def single(self) -> bool:
        if self.step is None:
            return self.low == self.high
        if self.low == self.high:
            return True
        return (self.high - self.low) < self.step

    def contains(self, internal_value: float) -> bool:
        value = internal_value
        if self.step is None:
            return self.low <= value <= self.high
        k = (value - self.low) / self.step
        return self.low <= value <= self.high and abs(k - round(k)) < 1.0e-8


class IntDistribution(BaseDistribution):
    """
    An integer range ``[low, high]``.

    Args:
        low: Lower endpoint, inclusive.
        high: Upper endpoint, inclusive.
        log: Sample in the log domain. Requires ``low >= 1``.
        step: Discretization step. Must be 1 when ``log`` is True.
    """

    def __init__(self, low: int, high: int, log: bool = False, step: int = 1):
        if log and step != 1:
            raise ValueError(
                f"The parameters `step` and `log` cannot be used at the same time "
                f"(got step={step}, log=True)."
            )
        if low > high:
            raise ValueError(f"`low <= high` must hold, but got low={low} and high={high}.")
        if log and low < 1:
            raise ValueError(f"`low >= 1` must hold for a log distribution, but got low={low}.")
        if step <= 0:
            raise ValueError(f"`step > 0` must hold, but got step={step}.")

        self.log = bool(log)
        self.step = int(step)
        self.low = int(low)
        self.high = int(_adjust_high(int(low), int(high), int(step)))

    def to_external_repr(self, internal_value: float) -> int:
        return int(internal_value)

    def to_internal_repr(self, external_value: Any) -> float:
        try:
            value = float(external_value)
        except (ValueError, TypeError) as e:
            raise ValueError(f"'{external_value}' is not a valid int value.") from e
        if math.isnan(value):
            raise ValueError(f"'{external_value}' is NaN, which is not a valid parameter value.")
        return value

    def single(self) -> bool:
        if self.log:
            return self.low == self.high
        if self.low == self.high:
            return True
        return (self.high - self.low) < self.step

    def contains(self, internal_value: float) -> bool:
        value = internal_value
        return self.low <= value <= self.high and (value - self.low) % self.step == 0


def _choice_kind(choice: Any) -> type:
    # bool is a subclass of int, so it is checked first.
    for kind in (bool, int, float, str):
        if isinstance(choice, kind):
            return kind
    raise ValueError(
        f"Choices for a categorical distribution should be a bool, int, float or str, "
        f"but got {choice!r} of type {type(choice).__name__}."
    )


class CategoricalDistribution(BaseDistribution):
    """
    A finite ordered set of choices of the same kind.

    Args:
        choices: A non-empty list or tuple of bool, int, float or str values.
            All choices must share one kind.
    """

    def __init__(self, choices: Sequence[CategoricalChoiceType]):
        if len(choices) == 0:
            raise ValueError("The `choices` must contain one or more elements.")
        normalized = tuple(c.item() if isinstance(c, np.generic) else c for c in choices)
        kinds = {_choice_kind(c) for c in normalized}
        if len(kinds) > 1:
            names = sorted(k.__name__ for k in kinds)
            raise ValueError(
                f"All choices of a categorical distribution must have the same type, "
                f"but got {names} in {list(normalized)}."
            )
        self.choices: Tuple[CategoricalChoiceType, ...] = normalized

    def to_external_repr(self, internal_value: float) -> CategoricalChoiceType:
        return self.choices[int(internal_value)]

    def to_internal_repr(self, external_value: Any) -> float:
        if isinstance(external_value, np.generic):
            external_value = external_value.item()
        for index, choice in enumerate(self.choices):
            if type(choice) is type(external_value) and choice == external_value:
                return float(index)
        raise ValueError(f"'{external_value}' is not one of the choices {list(self.choices)}.")

    def single(self) -> bool:
        return len(self.choices) == 1

    def contains(self, internal_value: float) -> bool:
        index = int(internal_value)
        return 0 <= index < len(self.choices)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": type(self).__name__, "attributes": {"choices": list(self.choices)}}


_DISTRIBUTION_CLASSES = {
    cls.__name__: cls
    for cls in (FloatDistribution, IntDistribution, CategoricalDistribution)
}


def distribution_to_json(dist: BaseDistribution) -> str:
    """Serializes a distribution to a JSON string."""
    return json.dumps(dist.to_dict())


def json_to_distribution(json_str: str) -> BaseDistribution:
    """Deserializes a distribution produced by :func:`distribution_to_json`."""
    loaded = json.loads(json_str)
    name = loaded.get("name")
    if name not in _DISTRIBUTION_CLASSES:
        raise ValueError(f"Unknown distribution class: {name}")
    attributes = loaded["attributes"]
    if name == "CategoricalDistribution":
        return CategoricalDistribution(choices=attributes["choices"])
    return _DISTRIBUTION_CLASSES[name](**attributes)
