"""
Maps numeric distributions onto the unit interval and back.

Model-based and quasi-random samplers work on ``[0, 1]``; these helpers take
care of log scaling and step grids so that every value mapped back lies in the
distribution's domain.
"""
import decimal
import math
from typing import Union

import numpy as np

from ..distributions import FloatDistribution, IntDistribution

NumericDistribution = Union[FloatDistribution, IntDistribution]


def _int_log_bounds(dist: IntDistribution):
    return math.log(dist.low - 0.5), math.log(dist.high + 0.5)


def _n_grid_points(dist: NumericDistribution) -> int:
    return int(round((dist.high - dist.low) / dist.step)) + 1


def _step_decimals(step: float) -> int:
    exponent = decimal.Decimal(str(step)).normalize().as_tuple().exponent
    return max(-exponent, 0)


def _float_grid_point(dist: FloatDistribution, k: int) -> float:
    # snap onto the decimal grid of step
    decimals = max(_step_decimals(dist.step), _step_decimals(dist.low))
    return float(np.round(dist.low + k * dist.step, decimals))


def from_unit(dist: NumericDistribution, u: float):
    """Maps ``u`` in ``[0, 1]`` to a value of ``dist``."""
    u = min(max(float(u), 0.0), 1.0)

    if isinstance(dist, IntDistribution):
        if dist.log:
            lo, hi = _int_log_bounds(dist)
            value = int(round(math.exp(lo + u * (hi - lo))))
            return min(max(value, dist.low), dist.high)
        n = _n_grid_points(dist)
        k = min(int(math.floor(u * n)), n - 1)
        return dist.low + k * dist.step

    if dist.log:
        lo, hi = math.log(dist.low), math.log(dist.high)
        value = math.exp(lo + u * (hi - lo))
    elif dist.step is not None:
        n = _n_grid_points(dist)
        k = min(int(math.floor(u * n)), n - 1)
        value = _float_grid_point(dist, k)
    else:
        value = dist.low + u * (dist.high - dist.low)
    return float(min(max(value, dist.low), dist.high))


def to_unit(dist: NumericDistribution, value: float) -> float:
    """Maps a value of ``dist`` to ``[0, 1]``; the inverse of :func:`from_unit`."""
    if dist.high == dist.low:
        return 0.5

    if isinstance(dist, IntDistribution) and dist.log:
        lo, hi = _int_log_bounds(dist)
        return (math.log(value) - lo) / (hi - lo)
    if dist.log:
        lo, hi = math.log(dist.low), math.log(dist.high)
        return (math.log(value) - lo) / (hi - lo)
    if isinstance(dist, IntDistribution) or dist.step is not None:
        n = _n_grid_points(dist)
        k = round((value - dist.low) / dist.step)
        return (k + 0.5) / n
    return (value - dist.low) / (dist.high - dist.low)


def to_unit_array(dist: NumericDistribution, values) -> np.ndarray:
    return np.asarray([to_unit(dist, v) for v in values], dtype=float)


def grid_values(dist: NumericDistribution) -> list:
    """Every value of a discrete ``dist``: an int range or a stepped float range."""
    if isinstance(dist, IntDistribution):
        return list(range(dist.low, dist.high + 1, dist.step))
    if dist.step is None or dist.log:
        raise ValueError(f"{dist} has no finite set of values.")
    return [_float_grid_point(dist, k) for k in range(_n_grid_points(dist))]
