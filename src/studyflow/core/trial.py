import datetime
import numbers
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence, Set

import numpy as np

from .._logging import get_logger
from ..distributions import (
    BaseDistribution,
    CategoricalChoiceType,
    CategoricalDistribution,
    FloatDistribution,
    IntDistribution,
)
from ..exceptions import UpdateFinishedTrialError

if TYPE_CHECKING:
    from .study import Study

logger = get_logger(__name__)


class TrialState(Enum):
    """
    Represents the state of a trial.

    ``RUNNING`` is the only non-terminal state. A trial never leaves
    ``COMPLETE``, ``PRUNED`` or ``FAIL``.
    """
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    PRUNED = "PRUNED"
    FAIL = "FAIL"

    def is_finished(self) -> bool:
        return self != TrialState.RUNNING


@dataclass
class FrozenTrial:
    """
    An immutable snapshot of a trial record as held by a storage.

    Attributes:
        number: The 0-based index of the trial within its study.
        trial_id: The storage-wide unique identifier for the trial.
        state: The current state of the trial.
        value: The objective value, set once the trial is COMPLETE.
        params: Suggested parameter values keyed by name.
        distributions: The distribution each parameter was suggested from.
        intermediate_values: Reported values keyed by step.
        user_attrs: Arbitrary JSON-serializable attributes.
        datetime_start: The time the trial was created.
        datetime_complete: The time the trial reached a terminal state.
    """
    number: int
    trial_id: int
    state: TrialState
    value: Optional[float] = None
    params: Dict[str, Any] = field(default_factory=dict)
    distributions: Dict[str, BaseDistribution] = field(default_factory=dict)
    intermediate_values: Dict[int, float] = field(default_factory=dict)
    user_attrs: Dict[str, Any] = field(default_factory=dict)
    datetime_start: Optional[datetime.datetime] = None
    datetime_complete: Optional[datetime.datetime] = None

    @property
    def last_step(self) -> Optional[int]:
        if not self.intermediate_values:
            return None
        return max(self.intermediate_values)

    @property
    def duration(self) -> Optional[datetime.timedelta]:
        if self.datetime_start and self.datetime_complete:
            return self.datetime_complete - self.datetime_start
        return None


def _is_narrow_float(value: Any) -> bool:
    return isinstance(value, np.floating) and value.dtype.itemsize < 8


class Trial:
    """
    The handle passed to an objective function.

    A trial suggests parameter values through the study's sampler, reports
    intermediate values and asks the study's pruner whether to stop early. All
    reads and writes go through the study's storage while holding the study's
    lock, so several handles of one study can be used from different threads.

    Args:
        study: The study the trial belongs to.
        trial_id: The storage ID of the trial record.
    """

    def __init__(self, study: "Study", trial_id: int):
        self.study = study
        self._trial_id = trial_id
        self._number = study._storage.get_trial(trial_id).number
        self._narrowing_warned: Set[str] = set()

    @property
    def trial_id(self) -> int:
        return self._trial_id

    @property
    def number(self) -> int:
        return self._number

    def suggest_float(self, name: str, low: float, high: float, step: Optional[float] = None,
                      log: bool = False) -> float:
        """
        Suggests a value for a floating point parameter.

        Args:
            name: The parameter name.
            low: Lower endpoint of the range, inclusive.
            high: Upper endpoint of the range, inclusive.
            step: Discretization step. Cannot be combined with ``log``.
            log: Sample from the log domain. Requires ``low > 0``.

        Returns:
            The suggested value as a Python float. A parameter that was already
            suggested in this trial returns its recorded value.
        """
        if _is_narrow_float(low) or _is_narrow_float(high):
            if name not in self._narrowing_warned:
                self._narrowing_warned.add(name)
                logger.warning(
                    f"Converting the bounds of parameter '{name}' "
                    f"({type(low).__name__}, {type(high).__name__}) to float64."
                )
        distribution = FloatDistribution(float(low), float(high), log=log, step=step)
        return self._suggest(name, distribution)

    def suggest_int(self, name: str, low: int, high: int, step: int = 1, log: bool = False) -> int:
        """
        Suggests a value for an integer parameter.

        Args:
            name: The parameter name.
            low: Lower endpoint of the range, inclusive.
            high: Upper endpoint of the range, inclusive.
            step: Discretization step. Must be 1 when ``log`` is True.
            log: Sample from the log domain. Requires ``low >= 1``.

        Returns:
            The suggested value as a Python int.
        """
        for arg_name, arg in (("low", low), ("high", high), ("step", step)):
            if isinstance(arg, bool) or not isinstance(arg, numbers.Integral):
                raise ValueError(f"`{arg_name}` of suggest_int must be an integer, got {arg!r}.")
        distribution = IntDistribution(int(low), int(high), log=log, step=int(step))
        return self._suggest(name, distribution)

    def suggest_categorical(self, name: str,
                            choices: Sequence[CategoricalChoiceType]) -> CategoricalChoiceType:
        """
        Suggests one of ``choices`` for a categorical parameter.

        Args:
            name: The parameter name.
            choices: A non-empty list or tuple of values sharing one of the
                kinds bool, int, float or str.
        """
        if not isinstance(choices, (list, tuple)):
            raise ValueError(
                f"`choices` must be a list or tuple, got {type(choices).__name__}."
            )
        return self._suggest(name, CategoricalDistribution(choices))

    def _suggest(self, name: str, distribution: BaseDistribution) -> Any:
        storage = self.study._storage
        with self.study._lock:
            frozen = storage.get_trial(self._trial_id)
            if name in frozen.distributions:
                return frozen.params[name]
            if frozen.state.is_finished():
                raise UpdateFinishedTrialError(
                    f"Trial #{frozen.number} has already finished with state {frozen.state.name}."
                )

            if distribution.single():
                if isinstance(distribution, CategoricalDistribution):
                    value = distribution.choices[0]
                else:
                    value = distribution.low
            else:
                history = self.study._get_history()
                value = self.study.sampler.sample(history, self._trial_id, name, distribution)

            internal = distribution.to_internal_repr(value)
            storage.set_trial_param(self._trial_id, name, internal, distribution)
            return distribution.to_external_repr(internal)

    def report(self, value: float, step: int) -> None:
        """
        Reports an intermediate objective value at a given step.

        Reporting a step twice overwrites the earlier value. The trial state
        does not change.

        Args:
            value: The intermediate value.
            step: A non-negative integer step, e.g. an epoch number.
        """
        if isinstance(step, bool) or not isinstance(step, numbers.Integral):
            raise TypeError(f"The `step` argument is of type {type(step).__name__} but must be an int.")
        if step < 0:
            raise ValueError(f"The `step` argument is {step} but cannot be negative.")
        try:
            value = float(value)
        except (TypeError, ValueError) as e:
            raise TypeError(
                f"The `value` argument is of type {type(value).__name__} but must be a float."
            ) from e

        with self.study._lock:
            self.study._storage.set_trial_intermediate_value(self._trial_id, int(step), value)

    def should_prune(self) -> bool:
        """
        Asks the study's pruner whether this trial should stop early.

        The decision uses the intermediate values visible in storage for this
        trial and every other trial of the study. Nothing is written.
        """
        with self.study._lock:
            history = self.study._get_history()
            return bool(self.study.pruner.should_prune(history, self._trial_id))

    def set_user_attr(self, key: str, value: Any) -> None:
        with self.study._lock:
            self.study._storage.set_trial_user_attr(self._trial_id, key, value)

    def _frozen(self) -> FrozenTrial:
        return self.study._storage.get_trial(self._trial_id)

    @property
    def params(self) -> Dict[str, Any]:
        return dict(self._frozen().params)

    @property
    def distributions(self) -> Dict[str, BaseDistribution]:
        return dict(self._frozen().distributions)

    @property
    def intermediate_values(self) -> Dict[int, float]:
        return dict(self._frozen().intermediate_values)

    @property
    def user_attrs(self) -> Dict[str, Any]:
        return dict(self._frozen().user_attrs)

    @property
    def datetime_start(self) -> Optional[datetime.datetime]:
        return self._frozen().datetime_start

    def __repr__(self) -> str:
        return f"Trial(number={self._number}, trial_id={self._trial_id}, study={self.study.study_name!r})"
