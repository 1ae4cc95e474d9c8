"""
Study configuration: a dataclass that can be loaded from YAML, plus factories
that turn sampler and pruner names into instances.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Callable, Dict, Optional

import yaml

from ._logging import get_logger
from .distributions import CategoricalDistribution, FloatDistribution, IntDistribution
from .pruners import (
    BasePruner,
    MedianPruner,
    NopPruner,
    PercentilePruner,
    SuccessiveHalvingPruner,
)
from .samplers import (
    BaseSampler,
    BruteForceSampler,
    CmaEsSampler,
    GPSampler,
    GridSampler,
    QMCSampler,
    RandomSampler,
    TPESampler,
)
from .search_space import SearchSpace

logger = get_logger(__name__)

_SAMPLERS = {
    "random": RandomSampler,
    "tpe": TPESampler,
    "gp": GPSampler,
    "grid": GridSampler,
    "qmc": QMCSampler,
    "bruteforce": BruteForceSampler,
    "cmaes": CmaEsSampler,
}

_PRUNERS = {
    "median": MedianPruner,
    "percentile": PercentilePruner,
    "successive_halving": SuccessiveHalvingPruner,
    "asha": SuccessiveHalvingPruner,
    "none": NopPruner,
}


def create_sampler(sampler_type: str, seed: Optional[int] = None, **kwargs: Any) -> BaseSampler:
    """Create a sampler by type.

    Args:
        sampler_type: One of ``random``, ``tpe``, ``gp``, ``grid``, ``qmc``,
            ``bruteforce`` or ``cmaes``.
        seed: Random seed for reproducibility.
        **kwargs: Passed on to the sampler's constructor.

    Returns:
        Configured sampler instance.
    """
    key = sampler_type.lower()
    if key not in _SAMPLERS:
        raise ValueError(f"Unknown sampler type: {sampler_type}")
    return _SAMPLERS[key](seed=seed, **kwargs)


def create_pruner(pruner_type: str, **kwargs: Any) -> BasePruner:
    """Create a pruner by type.

    Args:
        pruner_type: One of ``median``, ``percentile``, ``successive_halving``
            (alias ``asha``) or ``none``.
        **kwargs: Passed on to the pruner's constructor.
    """
    key = pruner_type.lower()
    if key not in _PRUNERS:
        raise ValueError(f"Unknown pruner type: {pruner_type}")
    return _PRUNERS[key](**kwargs)


def _parse_param(name: str, spec: Any) -> Any:
    # Dict entries allow step/log control: {type: int, low: 1, high: 64, log: true}
    if not isinstance(spec, dict):
        return spec
    kind = spec.get("type")
    if kind == "int":
        return IntDistribution(spec["low"], spec["high"], log=spec.get("log", False), step=spec.get("step", 1))
    if kind == "float":
        return FloatDistribution(spec["low"], spec["high"], log=spec.get("log", False), step=spec.get("step"))
    if kind == "categorical":
        return CategoricalDistribution(spec["choices"])
    raise ValueError(f"Unknown parameter type for '{name}': {kind!r}")


@dataclass
class StudyConfig:
    """Comprehensive study configuration"""
    study_name: Optional[str] = None
    storage: Optional[str] = None
    direction: str = "minimize"
    sampler: str = "random"
    sampler_kwargs: Dict[str, Any] = field(default_factory=dict)
    pruner: str = "median"
    pruner_kwargs: Dict[str, Any] = field(default_factory=dict)
    n_trials: int = 100
    n_jobs: int = 1
    seed: Optional[int] = None
    verbose: bool = False
    load_if_exists: bool = True
    search_space: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudyConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str) -> "StudyConfig":
        """Loads a configuration file. A missing file yields the defaults."""
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning(f"Configuration file '{path}' not found, using default values.")
            data = {}
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    def to_yaml(self, path: str) -> None:
        with open(path, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    def build_search_space(self) -> SearchSpace:
        return SearchSpace.from_mapping(
            {name: _parse_param(name, spec) for name, spec in self.search_space.items()}
        )

    def create_study(self, artifact_store=None):
        from .core.study import create_study

        if self.sampler.lower() == "grid" and "search_space" not in self.sampler_kwargs:
            # Lists in the search space double as the grid's candidate values
            grid = {name: spec for name, spec in self.search_space.items() if isinstance(spec, list)}
            sampler = create_sampler(self.sampler, seed=self.seed, search_space=grid, **self.sampler_kwargs)
        else:
            sampler = create_sampler(self.sampler, seed=self.seed, **self.sampler_kwargs)
        return create_study(
            study_name=self.study_name,
            storage=self.storage,
            direction=self.direction,
            sampler=sampler,
            pruner=create_pruner(self.pruner, **self.pruner_kwargs),
            load_if_exists=self.load_if_exists,
            artifact_store=artifact_store,
        )

    def optimize(self, objective: Callable[..., Any], study=None):
        """Creates the study (unless given) and runs the configured number of trials."""
        if study is None:
            study = self.create_study()
        search_space = self.build_search_space() if self.search_space else None
        study.optimize(objective, n_trials=self.n_trials, search_space=search_space,
                       n_jobs=self.n_jobs, verbose=self.verbose)
        return study
