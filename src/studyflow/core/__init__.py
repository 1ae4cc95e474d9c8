from .trial import FrozenTrial, Trial, TrialState
from .history import StudyDirection, StudyHistory
