import copy
import datetime
import threading
from typing import Any, Container, Dict, List, Optional

from .base import BaseStorage
from ..core.history import StudyDirection
from ..core.trial import FrozenTrial, TrialState
from ..distributions import BaseDistribution
from ..exceptions import (
    DuplicatedStudyError,
    StudyNotFoundError,
    TrialNotFoundError,
    UpdateFinishedTrialError,
)


class _StudyRecord:
    def __init__(self, name: str, direction: StudyDirection):
        self.name = name
        self.direction = direction
        self.user_attrs: Dict[str, Any] = {}
        self.trials: List[FrozenTrial] = []


class InMemoryStorage(BaseStorage):
    """
    A storage backend that keeps everything in process memory.

    All operations run under one re-entrant lock. Trials are returned as deep
    copies so callers never observe later mutations.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._studies: Dict[int, _StudyRecord] = {}
        self._name_to_id: Dict[str, int] = {}
        # trial_id -> (study_id, index within the study's trial list)
        self._trial_index: Dict[int, tuple] = {}
        self._next_study_id = 0
        self._next_trial_id = 0

    def __getstate__(self):
        state = self.__dict__.copy()
        del state["_lock"]
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._lock = threading.RLock()

    def create_study(self, study_name: str, direction: StudyDirection) -> int:
        with self._lock:
            if study_name in self._name_to_id:
                raise DuplicatedStudyError(f"Study '{study_name}' already exists.")
            study_id = self._next_study_id
            self._next_study_id += 1
            self._studies[study_id] = _StudyRecord(study_name, direction)
            self._name_to_id[study_name] = study_id
            return study_id

    def delete_study(self, study_id: int) -> None:
        with self._lock:
            record = self._get_study(study_id)
            for trial in record.trials:
                del self._trial_index[trial.trial_id]
            del self._name_to_id[record.name]
            del self._studies[study_id]

    def get_study_id_from_name(self, study_name: str) -> int:
        with self._lock:
            if study_name not in self._name_to_id:
                raise StudyNotFoundError(f"Study '{study_name}' does not exist.")
            return self._name_to_id[study_name]

    def get_study_name_from_id(self, study_id: int) -> str:
        with self._lock:
            return self._get_study(study_id).name

    def get_study_direction(self, study_id: int) -> StudyDirection:
        with self._lock:
            return self._get_study(study_id).direction

    def get_all_study_names(self) -> List[str]:
        with self._lock:
            return [self._studies[sid].name for sid in sorted(self._studies)]

    def set_study_user_attr(self, study_id: int, key: str, value: Any) -> None:
        with self._lock:
            self._get_study(study_id).user_attrs[key] = copy.deepcopy(value)

    def get_study_user_attrs(self, study_id: int) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._get_study(study_id).user_attrs)

    def create_trial(self, study_id: int, template_trial: Optional[FrozenTrial] = None) -> int:
        with self._lock:
            record = self._get_study(study_id)
            trial_id = self._next_trial_id
            self._next_trial_id += 1
            number = len(record.trials)

            if template_trial is None:
                trial = FrozenTrial(
                    number=number,
                    trial_id=trial_id,
                    state=TrialState.RUNNING,
                    datetime_start=datetime.datetime.now(),
                )
            else:
                trial = copy.deepcopy(template_trial)
                trial.number = number
                trial.trial_id = trial_id

            record.trials.append(trial)
            self._trial_index[trial_id] = (study_id, number)
            return trial_id

    def set_trial_param(self, trial_id: int, param_name: str, param_value_internal: float,
                        distribution: BaseDistribution) -> None:
        with self._lock:
            trial = self._get_running_trial(trial_id)
            trial.params[param_name] = distribution.to_external_repr(param_value_internal)
            trial.distributions[param_name] = distribution

    def set_trial_state_values(self, trial_id: int, state: TrialState,
                               value: Optional[float] = None) -> bool:
        with self._lock:
            trial = self._get_running_trial(trial_id)
            trial.state = state
            if value is not None:
                trial.value = float(value)
            if state.is_finished():
                trial.datetime_complete = datetime.datetime.now()
            return True

    def set_trial_intermediate_value(self, trial_id: int, step: int, intermediate_value: float) -> None:
        with self._lock:
            trial = self._get_running_trial(trial_id)
            trial.intermediate_values[step] = intermediate_value

    def set_trial_user_attr(self, trial_id: int, key: str, value: Any) -> None:
        with self._lock:
            trial = self._get_running_trial(trial_id)
            trial.user_attrs[key] = copy.deepcopy(value)

    def get_trial(self, trial_id: int) -> FrozenTrial:
        with self._lock:
            return copy.deepcopy(self._get_trial(trial_id))

    def get_all_trials(self, study_id: int,
                       states: Optional[Container[TrialState]] = None) -> List[FrozenTrial]:
        with self._lock:
            trials = self._get_study(study_id).trials
            if states is not None:
                trials = [t for t in trials if t.state in states]
            return copy.deepcopy(trials)

    def _get_study(self, study_id: int) -> _StudyRecord:
        if study_id not in self._studies:
            raise StudyNotFoundError(f"No study with study_id {study_id} exists.")
        return self._studies[study_id]

    def _get_trial(self, trial_id: int) -> FrozenTrial:
        if trial_id not in self._trial_index:
            raise TrialNotFoundError(f"No trial with trial_id {trial_id} exists.")
        study_id, number = self._trial_index[trial_id]
        return self._studies[study_id].trials[number]

    def _get_running_trial(self, trial_id: int) -> FrozenTrial:
        trial = self._get_trial(trial_id)
        if trial.state.is_finished():
            raise UpdateFinishedTrialError(
                f"Trial #{trial.number} has already finished and can not be updated "
                f"(state: {trial.state.name})."
            )
        return trial
