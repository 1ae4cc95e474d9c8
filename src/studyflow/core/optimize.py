"""
The optimization loop: runs an objective over many trials, serially or on a
thread pool.
"""
from __future__ import annotations

import collections
import inspect
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence, Type, Union

from .._logging import get_logger
from ..exceptions import ObjectiveSignatureError, TrialPruned
from ..search_space import SearchSpace
from .trial import FrozenTrial, Trial, TrialState

if TYPE_CHECKING:
    from .study import Study

logger = get_logger(__name__)

_worker_state = threading.local()


class ObjectiveCallShape(Enum):
    """
    How the loop invokes the objective.

    ``TRIAL_ONLY`` calls ``objective(trial)``, ``KEYWORDS`` calls
    ``objective(trial, **params)`` and ``BUNDLE`` calls
    ``objective(trial, params)`` with a named tuple of the suggested values.
    """
    TRIAL_ONLY = "trial_only"
    KEYWORDS = "keywords"
    BUNDLE = "bundle"


@dataclass(frozen=True)
class TrialOutcome:
    """
    An explicit objective result.

    Objectives may return a plain number (COMPLETE) or ``None`` (PRUNED); a
    ``TrialOutcome`` states the same thing without relying on a sentinel.
    """
    value: Optional[float] = None
    pruned: bool = False

    @classmethod
    def complete(cls, value: float) -> "TrialOutcome":
        return cls(value=value)

    @classmethod
    def prune(cls) -> "TrialOutcome":
        return cls(pruned=True)


def _binds(sig: inspect.Signature, *args, **kwargs) -> bool:
    try:
        sig.bind(*args, **kwargs)
    except TypeError:
        return False
    return True


def _signature_mismatch(sig: inspect.Signature, names: List[str]) -> str:
    extra = list(sig.parameters.values())[1:]
    accepted = {
        p.name for p in extra
        if p.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    }
    has_var_kw = any(p.kind == inspect.Parameter.VAR_KEYWORD for p in extra)
    required = {
        p.name for p in extra
        if p.default is inspect.Parameter.empty
        and p.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY,
                       inspect.Parameter.POSITIONAL_ONLY)
    }
    missing = sorted(required - set(names))
    unexpected = [] if has_var_kw else [n for n in names if n not in accepted]
    return f"missing parameters {missing}, unexpected parameters {unexpected}"


def resolve_call_shape(objective: Callable[..., Any], param_names: Sequence[str],
                       call_shape: Optional[ObjectiveCallShape] = None) -> ObjectiveCallShape:
    """
    Decides how ``objective`` is called, once, before any trial runs.

    Without an explicit ``call_shape`` the objective's signature is inspected:
    keyword arguments are preferred when every search-space name can be bound,
    otherwise a single extra positional parameter receives the bundle.

    Raises:
        ObjectiveSignatureError: If the objective cannot be called that way.
    """
    names = list(param_names)
    try:
        sig = inspect.signature(objective)
    except (TypeError, ValueError):
        # Builtins and some C callables expose no signature
        if call_shape is not None:
            return call_shape
        return ObjectiveCallShape.KEYWORDS if names else ObjectiveCallShape.TRIAL_ONLY

    trial = object()
    kwargs = {n: None for n in names}
    objective_name = getattr(objective, "__name__", repr(objective))

    if call_shape is None:
        if not names:
            call_shape = ObjectiveCallShape.TRIAL_ONLY
        elif _binds(sig, trial, **kwargs):
            call_shape = ObjectiveCallShape.KEYWORDS
        else:
            extra = list(sig.parameters.values())[1:]
            positional = [
                p for p in extra
                if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
            ]
            var_positional = any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in extra)
            if (len(positional) == 1 or (not positional and var_positional)) and _binds(sig, trial, trial):
                call_shape = ObjectiveCallShape.BUNDLE
            else:
                raise ObjectiveSignatureError(
                    f"Objective '{objective_name}' cannot accept the search-space parameters "
                    f"{names}: {_signature_mismatch(sig, names)}."
                )

    if call_shape == ObjectiveCallShape.TRIAL_ONLY:
        ok = _binds(sig, trial)
    elif call_shape == ObjectiveCallShape.KEYWORDS:
        ok = _binds(sig, trial, **kwargs)
    else:
        ok = _binds(sig, trial, trial)
    if not ok:
        detail = _signature_mismatch(sig, names) if call_shape == ObjectiveCallShape.KEYWORDS else (
            f"it must accept {'one' if call_shape == ObjectiveCallShape.TRIAL_ONLY else 'two'} "
            f"positional arguments"
        )
        raise ObjectiveSignatureError(
            f"Objective '{objective_name}' cannot be called as {call_shape.name}: {detail}."
        )
    return call_shape


def _check_n_jobs(n_jobs: int) -> None:
    if isinstance(n_jobs, bool) or not isinstance(n_jobs, int) or n_jobs < 1:
        raise ValueError(f"`n_jobs` must be a positive integer, got {n_jobs!r}.")
    n_cpus = os.cpu_count() or 1
    if n_jobs > n_cpus:
        raise ValueError(f"`n_jobs`={n_jobs} exceeds the number of available CPUs ({n_cpus}).")
    if n_jobs > 1 and getattr(_worker_state, "active", False):
        raise RuntimeError(
            "Parallel optimization cannot be started from inside a worker of another "
            "parallel optimization; use n_jobs=1 for nested loops."
        )


def _as_search_space(search_space: Optional[Union[SearchSpace, Mapping[str, Any]]]) -> SearchSpace:
    if search_space is None:
        return SearchSpace()
    if isinstance(search_space, SearchSpace):
        return search_space
    return SearchSpace.from_mapping(search_space)


class _TrialRunner:
    """Runs one trial: ask, pre-suggest, evaluate, tell."""

    def __init__(self, study: "Study", objective: Callable[..., Any], space: SearchSpace,
                 call_shape: ObjectiveCallShape, catch: Sequence[Type[Exception]], verbose: bool):
        self.study = study
        self.objective = objective
        self.space = space
        self.call_shape = call_shape
        self.catch = tuple(catch)
        self.verbose = verbose
        self._bundle_type = (
            collections.namedtuple("Params", space.names)
            if call_shape == ObjectiveCallShape.BUNDLE else None
        )

    def _call(self, trial: Trial, params: Dict[str, Any]) -> Any:
        if self.call_shape == ObjectiveCallShape.TRIAL_ONLY:
            return self.objective(trial)
        if self.call_shape == ObjectiveCallShape.KEYWORDS:
            return self.objective(trial, **params)
        return self.objective(trial, self._bundle_type(**params))

    def run(self, index: int) -> FrozenTrial:
        start = time.time()
        trial = self.study.ask()
        try:
            params = self.space.suggest_all(trial)
            result = self._call(trial, params)
        except TrialPruned:
            frozen = self.study.tell(trial, prune=True)
            self._log(index, frozen, time.time() - start)
            return frozen
        except self.catch as e:
            self.study._fail_trial(trial)
            logger.warning(f"Trial {trial.number} failed with {type(e).__name__}: {e}", exc_info=True)
            return self.study.storage.get_trial(trial.trial_id)
        except Exception as e:
            self.study._fail_trial(trial)
            logger.error(f"Trial {trial.number} failed with {type(e).__name__}: {e}")
            raise

        try:
            if isinstance(result, TrialOutcome):
                if result.pruned:
                    frozen = self.study.tell(trial, prune=True)
                else:
                    frozen = self.study.tell(trial, value=result.value)
            elif result is None:
                frozen = self.study.tell(trial, prune=True)
            else:
                frozen = self.study.tell(trial, value=result)
        except ValueError:
            self.study._fail_trial(trial)
            logger.error(f"Trial {trial.number} returned an invalid value: {result!r}")
            raise

        self._log(index, frozen, time.time() - start)
        return frozen

    def _log(self, index: int, frozen: FrozenTrial, duration: float) -> None:
        if not self.verbose:
            return
        if frozen.state == TrialState.COMPLETE:
            best = self.study.best_trial
            logger.info(
                f"Trial {frozen.number} ({index}) finished in {duration:.2f}s with value: "
                f"{frozen.value} and parameters: {frozen.params}. "
                f"Best is trial {best.number} with value: {best.value}."
            )
        else:
            logger.info(f"Trial {frozen.number} ({index}) finished in {duration:.2f}s as {frozen.state.name}.")


def _run_parallel(runner: _TrialRunner, n_trials: int, n_jobs: int) -> None:
    counter_lock = threading.Lock()
    next_index = [1]
    stop = threading.Event()

    def take_index() -> Optional[int]:
        with counter_lock:
            if stop.is_set() or next_index[0] > n_trials:
                return None
            index = next_index[0]
            next_index[0] += 1
            return index

    def worker() -> None:
        _worker_state.active = True
        try:
            while True:
                index = take_index()
                if index is None:
                    return
                try:
                    runner.run(index)
                except BaseException:
                    stop.set()
                    raise
        finally:
            _worker_state.active = False

    first_error: Optional[BaseException] = None
    with ThreadPoolExecutor(max_workers=n_jobs, thread_name_prefix="studyflow-worker") as executor:
        futures = [executor.submit(worker) for _ in range(n_jobs)]
        for future in as_completed(futures):
            error = future.exception()
            if error is not None and first_error is None:
                first_error = error
    if first_error is not None:
        raise first_error


def optimize(study: "Study",
             objective: Callable[..., Any],
             n_trials: int = 100,
             search_space: Optional[Union[SearchSpace, Mapping[str, Any]]] = None,
             n_jobs: int = 1,
             verbose: bool = False,
             call_shape: Optional[ObjectiveCallShape] = None,
             catch: Sequence[Type[Exception]] = ()) -> "Study":
    """
    Runs ``objective`` for ``n_trials`` trials of ``study``.

    For each trial the loop asks the study for a trial, suggests every
    parameter of ``search_space`` in order, calls the objective and tells the
    study the outcome: a number completes the trial; ``None``, a pruned
    :class:`TrialOutcome` or a raised :class:`TrialPruned` prunes it.

    Args:
        study: The study to optimize.
        objective: The function to evaluate. See :class:`ObjectiveCallShape`.
        n_trials: The number of trials to run.
        search_space: A :class:`SearchSpace` or a mapping accepted by
            :meth:`SearchSpace.from_mapping`. Its values are suggested before
            the objective is called.
        n_jobs: Number of worker threads. Must not exceed the CPU count.
        verbose: Log every finished trial at INFO level.
        call_shape: Forces a call shape instead of inspecting the signature.
        catch: Exception types that fail the trial without stopping the loop.

    Returns:
        The optimized study.

    Raises:
        ValueError: If ``n_jobs`` or ``n_trials`` is invalid.
        RuntimeError: If ``n_jobs > 1`` is requested from inside a worker of
            another parallel optimization.
        ObjectiveSignatureError: If the objective cannot take the parameters.

    Any other exception raised by the objective fails its trial, stops the
    dispatch of new trials and is re-raised once running trials have finished.
    """
    if isinstance(n_trials, bool) or not isinstance(n_trials, int) or n_trials < 0:
        raise ValueError(f"`n_trials` must be a non-negative integer, got {n_trials!r}.")
    _check_n_jobs(n_jobs)
    space = _as_search_space(search_space)
    shape = resolve_call_shape(objective, space.names, call_shape)
    runner = _TrialRunner(study, objective, space, shape, catch, verbose)

    if verbose:
        logger.info(f"Starting optimization of study '{study.study_name}' for {n_trials} trials "
                    f"with {n_jobs} worker(s).")

    if n_jobs == 1:
        for index in range(1, n_trials + 1):
            runner.run(index)
    else:
        _run_parallel(runner, n_trials, n_jobs)
    return study
