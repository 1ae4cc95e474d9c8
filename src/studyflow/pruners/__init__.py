from .base import BasePruner, NopPruner
from .percentile import MedianPruner, PercentilePruner
from .successive_halving import SuccessiveHalvingPruner

__all__ = [
    "BasePruner",
    "MedianPruner",
    "NopPruner",
    "PercentilePruner",
    "SuccessiveHalvingPruner",
]
