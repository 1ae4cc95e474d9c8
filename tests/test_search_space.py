import logging

import numpy as np
import pytest

from studyflow import SearchSpace
from studyflow.distributions import CategoricalDistribution, FloatDistribution, IntDistribution

# --- Building ---


def test_add_methods_chain():
    space = (
        SearchSpace()
        .add_float("lr", 1e-5, 1e-1, log=True)
        .add_int("layers", 1, 4)
        .add_categorical("optimizer", ["adam", "sgd"])
    )
    assert space.names == ["lr", "layers", "optimizer"]
    assert len(space) == 3
    assert "lr" in space
    assert list(space) == space.names
    assert space.params["lr"] == FloatDistribution(1e-5, 1e-1, log=True)


def test_from_mapping_infers_distributions():
    """
    Tests how pairs, lists and distribution objects are read.
    """
    space = SearchSpace.from_mapping({
        "x": (0.0, 1.0),
        "n": [1, 10],
        "flag": [True, False],
        "act": ["relu", "tanh", "gelu"],
        "sizes": [16, 32, 64],
        "lr": FloatDistribution(1e-4, 1e-1, log=True),
    })
    assert space.params["x"] == FloatDistribution(0.0, 1.0)
    assert space.params["n"] == IntDistribution(1, 10)
    assert space.params["flag"] == CategoricalDistribution([True, False])
    assert space.params["act"] == CategoricalDistribution(["relu", "tanh", "gelu"])
    assert space.params["sizes"] == CategoricalDistribution([16, 32, 64])
    assert space.params["lr"].log


def test_from_mapping_rejects_mixed_int_float_pair():
    with pytest.raises(ValueError, match="integers"):
        SearchSpace.from_mapping({"n": (1, 2.5)})


def test_from_mapping_rejects_scalars():
    with pytest.raises(ValueError):
        SearchSpace.from_mapping({"x": 3})


def test_from_mapping_warns_on_narrow_float_bounds(caplog):
    with caplog.at_level(logging.WARNING, logger="studyflow"):
        space = SearchSpace.from_mapping({"x": (np.float32(0.0), np.float32(1.0))})
    assert "Converting" in caplog.text
    assert space.params["x"] == FloatDistribution(0.0, 1.0)


@pytest.mark.parametrize("name", ["1x", "with space", "class", "_hidden", ""])
def test_invalid_parameter_names(name):
    with pytest.raises(ValueError):
        SearchSpace().add_int(name, 0, 1)

# --- Suggesting ---


def test_suggest_all_records_every_parameter(study):
    space = SearchSpace.from_mapping({
        "x": (0.0, 1.0),
        "n": IntDistribution(0, 100, step=10),
        "act": ["relu", "tanh", "gelu"],
    })
    trial = study.ask()
    values = space.suggest_all(trial)
    assert list(values) == ["x", "n", "act"]
    assert values["n"] % 10 == 0
    assert values["act"] in ("relu", "tanh", "gelu")
    assert trial.params == values
