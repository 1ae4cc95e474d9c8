from abc import ABC, abstractmethod

from ..core.history import StudyHistory


class BasePruner(ABC):
    """
    Abstract base class for pruners.

    A pruner decides from the intermediate values visible in storage whether a
    running trial should stop early. It must not write to the storage.
    """

    @abstractmethod
    def should_prune(self, history: StudyHistory, trial_id: int) -> bool:
        """
        Determines whether a trial should be pruned at its latest reported step.

        Args:
            history: The study's trials, the asking trial included.
            trial_id: The ID of the trial asking.

        Returns:
            bool: True if the trial should be pruned, False otherwise.
        """
        pass


class NopPruner(BasePruner):
    """A pruner that never prunes."""

    def should_prune(self, history: StudyHistory, trial_id: int) -> bool:
        return False
