import datetime
import math
import threading
import uuid
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Container,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    Union,
)

import numpy as np
import pandas as pd

from .. import artifacts as _artifacts
from .._logging import get_logger
from ..exceptions import DuplicatedStudyError
from ..pruners import BasePruner, MedianPruner
from ..samplers import BaseSampler, RandomSampler
from ..storage import BaseStorage, get_storage
from .history import StudyDirection, StudyHistory
from .trial import FrozenTrial, Trial, TrialState

if TYPE_CHECKING:
    from ..artifacts import ArtifactMeta, FileSystemArtifactStore
    from ..search_space import SearchSpace
    from .optimize import ObjectiveCallShape

logger = get_logger(__name__)

StorageType = Union[str, BaseStorage, None]


class Study:
    """
    Manages a hyperparameter optimization study backed by a storage.

    A study hands out trials (``ask``), records their outcome (``tell``) and
    answers best-result queries relative to its direction. Use
    :func:`create_study` or :func:`load_study` rather than the constructor.

    All storage access made on behalf of the study (trial creation, parameter
    suggestion, reporting, pruning queries and ``tell``) is serialized by one
    re-entrant lock owned by the study. Objective code never runs under it.

    Args:
        study_name: The name of an existing study in ``storage``.
        storage: A storage backend instance or a URL to a database file.
        sampler: The sampler used to suggest parameter values.
        pruner: The pruner consulted by ``Trial.should_prune``.
        artifact_store: Optional store for files attached to trials.
    """

    def __init__(self,
                 study_name: str,
                 storage: StorageType,
                 sampler: Optional[BaseSampler] = None,
                 pruner: Optional[BasePruner] = None,
                 artifact_store: Optional["FileSystemArtifactStore"] = None):
        self.study_name = study_name
        self._storage = get_storage(storage)
        self._study_id = self._storage.get_study_id_from_name(study_name)
        self.sampler = sampler if sampler is not None else RandomSampler()
        self.pruner = pruner if pruner is not None else MedianPruner()
        self.artifact_store = artifact_store
        self._lock = threading.RLock()

    def __getstate__(self):
        state = self.__dict__.copy()
        del state["_lock"]
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"Study(study_name={self.study_name!r}, direction={self.direction.value!r})"

    @property
    def storage(self) -> BaseStorage:
        return self._storage

    @property
    def direction(self) -> StudyDirection:
        return self._storage.get_study_direction(self._study_id)

    @property
    def user_attrs(self) -> Dict[str, Any]:
        return self._storage.get_study_user_attrs(self._study_id)

    def set_user_attr(self, key: str, value: Any) -> None:
        with self._lock:
            self._storage.set_study_user_attr(self._study_id, key, value)

    def _get_history(self) -> StudyHistory:
        with self._lock:
            return StudyHistory(
                study_name=self.study_name,
                direction=self.direction,
                trials=self._storage.get_all_trials(self._study_id),
            )

    # Trials

    @property
    def trials(self) -> List[FrozenTrial]:
        """All trials of the study ordered by trial number."""
        return self.get_trials()

    def get_trials(self, states: Optional[Container[TrialState]] = None) -> List[FrozenTrial]:
        return self._storage.get_all_trials(self._study_id, states=states)

    def ask(self) -> Trial:
        """
        Creates a new RUNNING trial.

        Safe to call from several threads: every call gets a distinct trial ID
        and trial number.
        """
        with self._lock:
            trial_id = self._storage.create_trial(self._study_id)
            return Trial(self, trial_id)

    def tell(self, trial: Union[Trial, int], value: Any = None, prune: bool = False) -> FrozenTrial:
        """
        Finishes a running trial.

        Args:
            trial: The trial handle returned by :meth:`ask`, or its trial number.
            value: The objective value. A one-element sequence is unwrapped.
                A NaN value finishes the trial as FAIL.
            prune: Finish the trial as PRUNED. Any ``value`` is ignored.

        Returns:
            The finished trial.

        Raises:
            ValueError: If neither ``value`` nor ``prune`` is given, or the
                value is not a single number.
            UpdateFinishedTrialError: If the trial has already finished.
        """
        if value is None and not prune:
            raise ValueError("Either `value` or `prune=True` must be given to tell a trial.")

        trial_id = self._resolve_trial_id(trial)
        if prune:
            state, final_value = TrialState.PRUNED, None
        else:
            state, final_value = self._check_value(value)

        with self._lock:
            self._storage.set_trial_state_values(trial_id, state, final_value)
            frozen = self._storage.get_trial(trial_id)

        if state == TrialState.FAIL:
            logger.warning(f"Trial {frozen.number} failed because of the value {value!r}.")
        else:
            logger.debug(
                f"Trial {frozen.number} finished with state {state.name}, value {final_value} "
                f"and parameters {frozen.params}."
            )
        return frozen

    def _resolve_trial_id(self, trial: Union[Trial, int]) -> int:
        if isinstance(trial, Trial):
            if trial.study._storage is not self._storage or trial.study._study_id != self._study_id:
                raise ValueError(f"{trial!r} does not belong to study '{self.study_name}'.")
            return trial.trial_id
        if isinstance(trial, (int, np.integer)) and not isinstance(trial, bool):
            return self._storage.get_trial_id_from_study_id_trial_number(self._study_id, int(trial))
        raise TypeError(f"Expected a Trial or a trial number, got {type(trial).__name__}.")

    @staticmethod
    def _check_value(value: Any) -> Tuple[TrialState, Optional[float]]:
        if isinstance(value, (list, tuple, np.ndarray)):
            if len(value) != 1:
                raise ValueError(
                    f"Only single-objective studies are supported, but {len(value)} values "
                    f"were given: {value!r}."
                )
            value = value[0]
        if isinstance(value, (str, bytes)):
            raise ValueError(f"The objective value must be a number, got {value!r}.")
        try:
            value = float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"The objective value must be a number, got {value!r}.") from e
        if math.isnan(value):
            return TrialState.FAIL, None
        return TrialState.COMPLETE, value

    def _fail_trial(self, trial: Trial) -> None:
        """Marks a trial FAIL unless it has already finished."""
        with self._lock:
            if not self._storage.get_trial(trial.trial_id).state.is_finished():
                self._storage.set_trial_state_values(trial.trial_id, TrialState.FAIL)

    def fail_stale_trials(self, grace_period: float) -> List[int]:
        """
        Marks RUNNING trials older than ``grace_period`` seconds as FAIL.

        A worker that died mid-evaluation leaves its trial RUNNING forever; such
        trials never count towards best results, and this method finishes them.

        Returns:
            The numbers of the trials that were failed.
        """
        threshold = datetime.datetime.now() - datetime.timedelta(seconds=grace_period)
        failed = []
        with self._lock:
            for t in self.get_trials(states=(TrialState.RUNNING,)):
                if t.datetime_start is not None and t.datetime_start < threshold:
                    self._storage.set_trial_state_values(t.trial_id, TrialState.FAIL)
                    failed.append(t.number)
        for number in failed:
            logger.warning(f"Trial {number} was RUNNING for longer than {grace_period}s and is now FAIL.")
        return failed

    # Best results

    @property
    def best_trial(self) -> FrozenTrial:
        """
        The best COMPLETE trial according to the study direction.

        Raises:
            ValueError: If no trial has completed yet.
        """
        return self._storage.get_best_trial(self._study_id)

    @property
    def best_params(self) -> Dict[str, Any]:
        return self.best_trial.params

    @property
    def best_value(self) -> float:
        return self.best_trial.value

    # Optimization

    def optimize(self,
                 objective: Callable[..., Any],
                 n_trials: int = 100,
                 search_space: Optional[Union["SearchSpace", Dict[str, Any]]] = None,
                 n_jobs: int = 1,
                 verbose: bool = False,
                 call_shape: Optional["ObjectiveCallShape"] = None,
                 catch: Sequence[Type[Exception]] = ()) -> "Study":
        """Runs the optimization loop and returns ``self``. See :func:`studyflow.core.optimize.optimize`."""
        from .optimize import optimize

        return optimize(
            self, objective, n_trials=n_trials, search_space=search_space, n_jobs=n_jobs,
            verbose=verbose, call_shape=call_shape, catch=catch,
        )

    # Artifacts

    def upload_artifact(self, trial: Optional[Trial], file_path: Union[str, Dict[str, Any]],
                        mimetype: Optional[str] = None, encoding: Optional[str] = None) -> str:
        return _artifacts.upload_artifact(self, trial, file_path, mimetype=mimetype, encoding=encoding)

    def get_all_artifact_meta(self, trial: Optional[Union[Trial, FrozenTrial]] = None) -> List["ArtifactMeta"]:
        return _artifacts.get_all_artifact_meta(self, trial)

    def download_artifact(self, artifact_id: str, file_path: str) -> str:
        return _artifacts.download_artifact(self, artifact_id, file_path)

    # Reporting

    def get_trials_dataframe(self) -> pd.DataFrame:
        """Returns the trial results as a pandas DataFrame."""
        all_trials = self.trials
        if not all_trials:
            return pd.DataFrame()

        data = []
        for trial in all_trials:
            row = {
                'number': trial.number,
                'value': trial.value,
                'state': trial.state.name,
                'datetime_start': trial.datetime_start,
                'datetime_complete': trial.datetime_complete,
                'duration': trial.duration,
            }
            for name, value in trial.params.items():
                row[f'params_{name}'] = value
            for key, value in trial.user_attrs.items():
                row[f'user_attrs_{key}'] = value
            data.append(row)

        return pd.DataFrame(data)

    def print_summary(self):
        """Prints a summary of the optimization results."""
        df = self.get_trials_dataframe()

        print("\n" + "=" * 70)
        print(f"Optimization Summary: {self.study_name} ({self.direction.value})")
        print("=" * 70)

        try:
            best = self.best_trial
        except ValueError:
            best = None

        if best is not None:
            print(f"Best Value: {best.value:.6f}")
            print(f"Best Trial: #{best.number}")
            print("\nBest Parameters:")
            for name, value in best.params.items():
                print(f"   {name}: {value}")
        else:
            print("No completed trials found.")

        if not df.empty:
            print("\nStatistics:")
            print(f"   Total Trials: {len(df)}")
            for state in TrialState:
                count = (df['state'] == state.name).sum()
                if count > 0:
                    print(f"   {state.name}: {count}")


def create_study(study_name: Optional[str] = None,
                 storage: StorageType = None,
                 direction: Union[str, StudyDirection] = "minimize",
                 sampler: Optional[BaseSampler] = None,
                 pruner: Optional[BasePruner] = None,
                 load_if_exists: bool = True,
                 artifact_store: Optional["FileSystemArtifactStore"] = None) -> Study:
    """
    Creates a new study, or attaches to an existing one.

    Args:
        study_name: The name of the study. A unique name is generated if omitted.
        storage: A storage instance, a SQLite URL, or None for in-memory storage.
        direction: Either ``"minimize"`` or ``"maximize"``.
        sampler: Defaults to :class:`RandomSampler`.
        pruner: Defaults to :class:`MedianPruner`.
        load_if_exists: Attach to an existing study of the same name instead of
            raising. The stored direction and history are kept.
        artifact_store: Optional store for files attached to trials.

    Raises:
        ValueError: If ``direction`` is invalid.
        DuplicatedStudyError: If the study exists and ``load_if_exists`` is False.
    """
    if not isinstance(direction, StudyDirection):
        direction = StudyDirection.from_string(direction)
    storage = get_storage(storage)
    if study_name is None:
        study_name = f"no-name-{uuid.uuid4()}"

    try:
        storage.create_study(study_name, direction)
        logger.info(f"A new study created with name: {study_name}")
    except DuplicatedStudyError:
        if not load_if_exists:
            raise
        stored = storage.get_study_direction(storage.get_study_id_from_name(study_name))
        if stored != direction:
            logger.warning(
                f"Study '{study_name}' already exists with direction '{stored.value}'; "
                f"the requested direction '{direction.value}' is ignored."
            )
        logger.info(f"Using an existing study with name '{study_name}' instead of creating a new one.")

    return Study(study_name, storage, sampler=sampler, pruner=pruner, artifact_store=artifact_store)


def load_study(study_name: str,
               storage: StorageType,
               sampler: Optional[BaseSampler] = None,
               pruner: Optional[BasePruner] = None,
               artifact_store: Optional["FileSystemArtifactStore"] = None) -> Study:
    """
    Loads an existing study.

    Raises:
        StudyNotFoundError: If no study has this name.
    """
    return Study(study_name, storage, sampler=sampler, pruner=pruner, artifact_store=artifact_store)


def delete_study(study_name: str, storage: StorageType) -> None:
    """Deletes a study and all of its trials."""
    storage = get_storage(storage)
    storage.delete_study(storage.get_study_id_from_name(study_name))


def copy_study(from_study_name: str,
               from_storage: StorageType,
               to_storage: StorageType,
               to_study_name: str = "") -> Study:
    """
    Copies a study, including every trial, into another storage.

    Args:
        from_study_name: The name of the study to copy.
        from_storage: The storage holding the study.
        to_storage: The destination storage.
        to_study_name: The name of the copy. An empty string keeps the name.

    Returns:
        The copied study.

    Raises:
        DuplicatedStudyError: If the destination name is taken in ``to_storage``.
    """
    source = load_study(from_study_name, from_storage)
    to_storage = get_storage(to_storage)
    to_study_name = to_study_name or from_study_name

    to_study_id = to_storage.create_study(to_study_name, source.direction)
    for key, value in source.user_attrs.items():
        to_storage.set_study_user_attr(to_study_id, key, value)
    for trial in source.trials:
        to_storage.create_trial(to_study_id, template_trial=trial)

    return Study(to_study_name, to_storage)


def get_all_study_names(storage: StorageType) -> List[str]:
    """Returns the names of all studies in ``storage`` in creation order."""
    return get_storage(storage).get_all_study_names()
