import numpy as np
import pytest

from studyflow.distributions import (
    CategoricalDistribution,
    FloatDistribution,
    IntDistribution,
    distribution_to_json,
    json_to_distribution,
)

# --- Validation ---


def test_int_distribution_rejects_step_with_log():
    """
    Tests that step and log cannot be combined for integer ranges.
    """
    with pytest.raises(ValueError, match="step"):
        IntDistribution(1, 10, log=True, step=2)


def test_float_distribution_rejects_step_with_log():
    with pytest.raises(ValueError, match="step"):
        FloatDistribution(0.1, 1.0, log=True, step=0.1)


@pytest.mark.parametrize("kwargs", [
    dict(low=5, high=1),
    dict(low=0, high=10, log=True),
    dict(low=0, high=10, step=0),
    dict(low=0, high=10, step=-1),
])
def test_int_distribution_invalid_bounds(kwargs):
    """
    Tests that inverted bounds, a log range starting below 1 and a
    non-positive step are all rejected.
    """
    with pytest.raises(ValueError):
        IntDistribution(**kwargs)


@pytest.mark.parametrize("kwargs", [
    dict(low=1.0, high=0.0),
    dict(low=0.0, high=1.0, log=True),
    dict(low=-1.0, high=1.0, log=True),
    dict(low=0.0, high=1.0, step=0.0),
])
def test_float_distribution_invalid_bounds(kwargs):
    with pytest.raises(ValueError):
        FloatDistribution(**kwargs)


def test_int_distribution_adjusts_high_to_step(caplog):
    """
    Tests that an upper bound off the step grid is lowered with a warning.
    """
    dist = IntDistribution(0, 10, step=3)
    assert dist.high == 9
    assert "adjusted" in caplog.text


def test_float_distribution_adjusts_high_to_step():
    dist = FloatDistribution(0.0, 1.0, step=0.3)
    assert dist.high == pytest.approx(0.9)


def test_categorical_rejects_empty_choices():
    with pytest.raises(ValueError, match="one or more"):
        CategoricalDistribution([])


def test_categorical_rejects_mixed_kinds():
    """
    Tests that choices must share one kind; bool and int are different kinds.
    """
    with pytest.raises(ValueError, match="same type"):
        CategoricalDistribution([1, "a"])
    with pytest.raises(ValueError, match="same type"):
        CategoricalDistribution([True, 0])


def test_categorical_rejects_unsupported_kind():
    with pytest.raises(ValueError):
        CategoricalDistribution([None, None])


def test_categorical_normalizes_numpy_scalars():
    dist = CategoricalDistribution([np.int64(1), np.int64(2)])
    assert dist.choices == (1, 2)
    assert type(dist.choices[0]) is int

# --- Representations ---


def test_categorical_internal_repr_distinguishes_bool_and_int():
    dist = CategoricalDistribution([False, True])
    assert dist.to_internal_repr(True) == 1.0
    with pytest.raises(ValueError):
        dist.to_internal_repr(1)


def test_int_distribution_contains():
    dist = IntDistribution(0, 100, step=10)
    assert dist.contains(30)
    assert not dist.contains(35)
    assert not dist.contains(110)


def test_float_distribution_contains_with_step():
    dist = FloatDistribution(0.0, 1.0, step=0.25)
    assert dist.contains(0.75)
    assert not dist.contains(0.8)


def test_single_value_distributions():
    assert IntDistribution(3, 3).single()
    assert FloatDistribution(0.5, 0.5).single()
    assert CategoricalDistribution(["only"]).single()
    assert not IntDistribution(0, 1).single()


def test_distribution_json_restores_equal_object():
    """
    Tests that a serialized distribution is restored to an equal object.
    """
    for dist in (
        IntDistribution(1, 64, log=True),
        FloatDistribution(0.0, 1.0, step=0.1),
        CategoricalDistribution(["adam", "sgd"]),
    ):
        assert json_to_distribution(distribution_to_json(dist)) == dist


def test_json_to_distribution_unknown_class():
    with pytest.raises(ValueError, match="Unknown distribution"):
        json_to_distribution('{"name": "Nope", "attributes": {}}')
