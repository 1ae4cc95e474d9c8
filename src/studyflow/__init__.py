# studyflow/__init__.py

__version__ = "1.0.0"

from . import pruners, samplers, storage
from ._logging import get_verbosity, set_verbosity
from .artifacts import (
    ArtifactMeta,
    FileSystemArtifactStore,
    download_artifact,
    get_all_artifact_meta,
    upload_artifact,
)
from .config import StudyConfig, create_pruner, create_sampler
from .core.history import StudyDirection, StudyHistory
from .core.optimize import ObjectiveCallShape, TrialOutcome, optimize
from .core.study import (
    Study,
    copy_study,
    create_study,
    delete_study,
    get_all_study_names,
    load_study,
)
from .core.trial import FrozenTrial, Trial, TrialState
from .distributions import CategoricalDistribution, FloatDistribution, IntDistribution
from .exceptions import (
    ArtifactNotFoundError,
    DuplicatedStudyError,
    ObjectiveSignatureError,
    StudyflowError,
    StudyNotFoundError,
    TrialNotFoundError,
    TrialPruned,
    UpdateFinishedTrialError,
)
from .search_space import SearchSpace
from .storage import create_sqlite_url

__all__ = [
    "ArtifactMeta",
    "ArtifactNotFoundError",
    "CategoricalDistribution",
    "DuplicatedStudyError",
    "FileSystemArtifactStore",
    "FloatDistribution",
    "FrozenTrial",
    "IntDistribution",
    "ObjectiveCallShape",
    "ObjectiveSignatureError",
    "SearchSpace",
    "Study",
    "StudyConfig",
    "StudyDirection",
    "StudyHistory",
    "StudyNotFoundError",
    "StudyflowError",
    "Trial",
    "TrialNotFoundError",
    "TrialOutcome",
    "TrialPruned",
    "TrialState",
    "UpdateFinishedTrialError",
    "copy_study",
    "create_pruner",
    "create_sampler",
    "create_sqlite_url",
    "create_study",
    "delete_study",
    "download_artifact",
    "get_all_artifact_meta",
    "get_all_study_names",
    "get_verbosity",
    "load_study",
    "optimize",
    "pruners",
    "samplers",
    "set_verbosity",
    "storage",
    "upload_artifact",
]
