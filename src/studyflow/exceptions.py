class StudyflowError(Exception):
    """Base class for all errors raised by studyflow."""
    pass


class DuplicatedStudyError(StudyflowError):
    """Raised when a study with the same name already exists in the storage."""
    pass


class StudyNotFoundError(StudyflowError, KeyError):
    """Raised when a study name or ID is unknown to the storage."""
    pass


class TrialNotFoundError(StudyflowError, KeyError):
    """Raised when a trial ID or number is unknown to the storage."""
    pass


class UpdateFinishedTrialError(StudyflowError, RuntimeError):
    """Raised when a trial that already reached a terminal state is modified."""
    pass


class ObjectiveSignatureError(StudyflowError, TypeError):
    """Raised when an objective cannot accept the parameters of a search space."""
    pass


class ArtifactNotFoundError(StudyflowError, FileNotFoundError):
    """Raised when an artifact ID is unknown to the artifact store."""
    pass


class TrialPruned(StudyflowError):
    """Exception to indicate that a trial was pruned.

    Objectives may raise it after ``trial.should_prune()`` returns True; the
    optimization loop records the trial as PRUNED.
    """
    pass
