from abc import ABC, abstractmethod
from typing import Any, Container, Dict, List, Optional

from ..core.history import StudyDirection
from ..core.trial import FrozenTrial, TrialState
from ..distributions import BaseDistribution
from ..exceptions import TrialNotFoundError


class BaseStorage(ABC):
    """
    Abstract base class for storage backends.

    This class defines the interface for persisting and retrieving study data,
    including study details, trial records, parameters and intermediate values.
    Implementations must be safe to call from several threads: trial creation
    hands out distinct IDs and state transitions are atomic.
    """

    # Studies

    @abstractmethod
    def create_study(self, study_name: str, direction: StudyDirection) -> int:
        """
        Creates a new study in the backend.

        Args:
            study_name: The name of the study.
            direction: The optimization direction.

        Returns:
            The unique ID of the newly created study.

        Raises:
            DuplicatedStudyError: If a study with the same name exists.
        """
        pass

    @abstractmethod
    def delete_study(self, study_id: int) -> None:
        """
        Deletes a study together with all of its trials.

        Raises:
            StudyNotFoundError: If the study does not exist.
        """
        pass

    @abstractmethod
    def get_study_id_from_name(self, study_name: str) -> int:
        """
        Retrieves the ID of a study given its name.

        Raises:
            StudyNotFoundError: If no study has this name.
        """
        pass

    @abstractmethod
    def get_study_name_from_id(self, study_id: int) -> str:
        pass

    @abstractmethod
    def get_study_direction(self, study_id: int) -> StudyDirection:
        pass

    @abstractmethod
    def get_all_study_names(self) -> List[str]:
        """Returns the names of all studies in creation order."""
        pass

    @abstractmethod
    def set_study_user_attr(self, study_id: int, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def get_study_user_attrs(self, study_id: int) -> Dict[str, Any]:
        pass

    # Trials

    @abstractmethod
    def create_trial(self, study_id: int, template_trial: Optional[FrozenTrial] = None) -> int:
        """
        Creates a new trial for a given study.

        Args:
            study_id: The ID of the study to which the trial belongs.
            template_trial: A trial whose state, value, parameters, intermediate
                values and user attributes are copied into the new record.
                Without it a fresh RUNNING trial is created.

        Returns:
            The unique ID of the newly created trial.
        """
        pass

    @abstractmethod
    def set_trial_param(self, trial_id: int, param_name: str, param_value_internal: float,
                        distribution: BaseDistribution) -> None:
        """
        Records a suggested parameter of a running trial.

        Args:
            trial_id: The ID of the trial.
            param_name: The parameter name.
            param_value_internal: The internal (float) representation of the value.
            distribution: The distribution the value was drawn from.
        """
        pass

    @abstractmethod
    def set_trial_state_values(self, trial_id: int, state: TrialState,
                               value: Optional[float] = None) -> bool:
        """
        Moves a running trial to a new state.

        The check that the trial is still running and the update are performed
        atomically.

        Returns:
            True once the transition has been applied.

        Raises:
            UpdateFinishedTrialError: If the trial is already in a terminal state.
        """
        pass

    @abstractmethod
    def set_trial_intermediate_value(self, trial_id: int, step: int, intermediate_value: float) -> None:
        pass

    @abstractmethod
    def set_trial_user_attr(self, trial_id: int, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def get_trial(self, trial_id: int) -> FrozenTrial:
        """
        Raises:
            TrialNotFoundError: If the trial does not exist.
        """
        pass

    @abstractmethod
    def get_all_trials(self, study_id: int,
                       states: Optional[Container[TrialState]] = None) -> List[FrozenTrial]:
        """
        Retrieves the trials of a study ordered by trial number.

        Args:
            study_id: The ID of the study.
            states: If given, only trials in one of these states are returned.
        """
        pass

    def get_n_trials(self, study_id: int, states: Optional[Container[TrialState]] = None) -> int:
        return len(self.get_all_trials(study_id, states=states))

    def get_trial_id_from_study_id_trial_number(self, study_id: int, trial_number: int) -> int:
        for t in self.get_all_trials(study_id):
            if t.number == trial_number:
                return t.trial_id
        raise TrialNotFoundError(
            f"No trial with number {trial_number} exists in study with ID {study_id}."
        )

    def get_best_trial(self, study_id: int) -> FrozenTrial:
        complete = self.get_all_trials(study_id, states=(TrialState.COMPLETE,))
        if not complete:
            raise ValueError("No trials are completed yet.")
        if self.get_study_direction(study_id) == StudyDirection.MAXIMIZE:
            return max(complete, key=lambda t: t.value)
        return min(complete, key=lambda t: t.value)

    def close(self) -> None:
        pass
