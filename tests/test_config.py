import pytest
import yaml

from studyflow import StudyConfig, StudyDirection, TrialState, create_pruner, create_sampler
from studyflow.distributions import IntDistribution
from studyflow.pruners import MedianPruner, NopPruner, SuccessiveHalvingPruner
from studyflow.samplers import (
    BruteForceSampler,
    CmaEsSampler,
    GridSampler,
    QMCSampler,
    RandomSampler,
    TPESampler,
)

# --- Factories ---


@pytest.mark.parametrize("name, cls", [
    ("random", RandomSampler),
    ("tpe", TPESampler),
    ("TPE", TPESampler),
    ("qmc", QMCSampler),
    ("bruteforce", BruteForceSampler),
    ("cmaes", CmaEsSampler),
])
def test_create_sampler(name, cls):
    assert isinstance(create_sampler(name, seed=0), cls)


def test_create_sampler_forwards_kwargs():
    sampler = create_sampler("tpe", seed=1, n_startup_trials=3)
    assert sampler.n_startup_trials == 3


def test_create_cmaes_sampler_forwards_options():
    sampler = create_sampler("cmaes", seed=1, popsize=6, use_separable_cma=True)
    assert sampler.popsize == 6
    assert sampler.use_separable_cma


def test_create_sampler_unknown():
    with pytest.raises(ValueError, match="Unknown sampler type"):
        create_sampler("annealing")


@pytest.mark.parametrize("name, cls", [
    ("median", MedianPruner),
    ("asha", SuccessiveHalvingPruner),
    ("successive_halving", SuccessiveHalvingPruner),
    ("none", NopPruner),
])
def test_create_pruner(name, cls):
    assert isinstance(create_pruner(name), cls)


def test_create_pruner_unknown():
    with pytest.raises(ValueError, match="Unknown pruner type"):
        create_pruner("hyperband")

# --- StudyConfig ---


def test_from_yaml(tmp_path):
    """
    Tests that a YAML file configures the sampler, pruner and search space.
    """
    path = tmp_path / "study.yaml"
    path.write_text(yaml.safe_dump({
        "study_name": "from-yaml",
        "direction": "maximize",
        "sampler": "tpe",
        "sampler_kwargs": {"n_startup_trials": 2},
        "pruner": "percentile",
        "pruner_kwargs": {"percentile": 25.0},
        "n_trials": 6,
        "seed": 42,
        "search_space": {
            "x": [0.0, 1.0],
            "units": {"type": "int", "low": 16, "high": 128, "step": 16},
            "act": ["relu", "tanh", "gelu"],
        },
    }))
    config = StudyConfig.from_yaml(str(path))
    assert config.n_trials == 6

    space = config.build_search_space()
    assert space.params["units"] == IntDistribution(16, 128, step=16)

    study = config.optimize(lambda trial, x, units, act: x * units)
    assert study.study_name == "from-yaml"
    assert study.direction == StudyDirection.MAXIMIZE
    assert len(study.get_trials(states=(TrialState.COMPLETE,))) == 6
    assert study.pruner.percentile == 25.0


def test_from_yaml_missing_file(tmp_path, caplog):
    config = StudyConfig.from_yaml(str(tmp_path / "absent.yaml"))
    assert config == StudyConfig()
    assert "not found" in caplog.text


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ValueError, match="Unknown configuration keys"):
        StudyConfig.from_dict({"n_trial": 5})


def test_unknown_parameter_type():
    config = StudyConfig(search_space={"x": {"type": "complex", "low": 0, "high": 1}})
    with pytest.raises(ValueError, match="Unknown parameter type"):
        config.build_search_space()


def test_yaml_round_trip(tmp_path):
    config = StudyConfig(study_name="saved", sampler="qmc", n_trials=3,
                         search_space={"x": [0.0, 1.0]})
    path = str(tmp_path / "saved.yaml")
    config.to_yaml(path)
    assert StudyConfig.from_yaml(path) == config


def test_grid_sampler_from_search_space_lists():
    """
    Tests that list entries double as the grid when the grid sampler is chosen.
    """
    config = StudyConfig(sampler="grid", seed=0, n_trials=6,
                         search_space={"a": [1, 2, 3], "b": ["x", "y"]})
    study = config.create_study()
    assert isinstance(study.sampler, GridSampler)
    assert study.sampler.n_grid_points == 6

    config.optimize(lambda trial, a, b: float(a), study=study)
    seen = {(t.params["a"], t.params["b"]) for t in study.trials}
    assert len(seen) == 6


def test_storage_url_in_config(tmp_path):
    url = f"sqlite:///{tmp_path / 'cfg.db'}"
    config = StudyConfig(study_name="stored", storage=url, n_trials=2,
                         search_space={"x": [0.0, 1.0]})
    config.optimize(lambda trial, x: x)
    again = StudyConfig(study_name="stored", storage=url).create_study()
    assert len(again.trials) == 2
