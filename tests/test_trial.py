import logging

import numpy as np
import pytest

from studyflow import TrialState, UpdateFinishedTrialError, create_study
from studyflow.distributions import FloatDistribution, IntDistribution
from studyflow.samplers import RandomSampler

# --- suggest_int ---


def test_suggest_int_within_bounds(study):
    """
    Tests that integer suggestions are Python ints inside the range.
    """
    for _ in range(20):
        trial = study.ask()
        value = trial.suggest_int("x", -3, 7)
        assert type(value) is int
        assert -3 <= value <= 7
        study.tell(trial, value)


def test_suggest_int_with_step(study):
    trial = study.ask()
    value = trial.suggest_int("x", 0, 100, step=10)
    assert value % 10 == 0
    assert 0 <= value <= 100


def test_suggest_int_log(study):
    trial = study.ask()
    value = trial.suggest_int("x", 1, 1024, log=True)
    assert 1 <= value <= 1024


def test_suggest_int_log_requires_positive_low(study):
    trial = study.ask()
    with pytest.raises(ValueError):
        trial.suggest_int("x", 0, 10, log=True)


def test_suggest_int_step_and_log_rejected_before_sampling(study):
    """
    Tests that step together with log is rejected and nothing is recorded.
    """
    trial = study.ask()
    with pytest.raises(ValueError):
        trial.suggest_int("x", 1, 10, step=2, log=True)
    assert trial.params == {}


def test_suggest_int_rejects_non_integer_bounds(study):
    trial = study.ask()
    with pytest.raises(ValueError):
        trial.suggest_int("x", 0.5, 10)


def test_suggest_int_accepts_numpy_bounds(study):
    trial = study.ask()
    value = trial.suggest_int("x", np.int32(1), np.int64(5))
    assert type(value) is int
    assert 1 <= value <= 5

# --- suggest_float ---


def test_suggest_float_within_bounds(study):
    trial = study.ask()
    value = trial.suggest_float("x", -1.5, 2.5)
    assert type(value) is float
    assert -1.5 <= value <= 2.5


def test_suggest_float_log_requires_positive_low(study):
    trial = study.ask()
    with pytest.raises(ValueError):
        trial.suggest_float("x", 0.0, 1.0, log=True)


def test_suggest_float_step_and_log_rejected(study):
    trial = study.ask()
    with pytest.raises(ValueError):
        trial.suggest_float("x", 0.1, 1.0, step=0.1, log=True)


def test_suggest_float_with_step(study):
    trial = study.ask()
    value = trial.suggest_float("x", 0.0, 1.0, step=0.25)
    assert value in (0.0, 0.25, 0.5, 0.75, 1.0)


def test_suggest_float_narrow_bounds_warn_once(study, caplog):
    """
    Tests that float32 bounds produce one "Converting" advisory per parameter
    and still yield a Python float.
    """
    trial = study.ask()
    with caplog.at_level(logging.WARNING, logger="studyflow"):
        value = trial.suggest_float("x", np.float32(0.0), np.float32(1.0))
        again = trial.suggest_float("x", np.float32(0.0), np.float32(1.0))

    assert type(value) is float
    assert value == again
    messages = [r.getMessage() for r in caplog.records if "Converting" in r.getMessage()]
    assert len(messages) == 1


def test_suggest_float_double_bounds_do_not_warn(study, caplog):
    trial = study.ask()
    with caplog.at_level(logging.WARNING, logger="studyflow"):
        trial.suggest_float("x", np.float64(0.0), 1.0)
    assert "Converting" not in caplog.text

# --- suggest_categorical ---


@pytest.mark.parametrize("choices", [
    ["a", "b", "c"],
    [True, False],
    [1, 2, 3],
    [0.1, 0.2],
    ("x", "y"),
])
def test_suggest_categorical_kinds(study, choices):
    """
    Tests string, bool, int, float and tuple-of-choices categoricals.
    """
    trial = study.ask()
    value = trial.suggest_categorical("c", choices)
    assert value in choices
    assert type(value) is type(choices[0])


def test_suggest_categorical_rejects_mixed_kinds(study):
    trial = study.ask()
    with pytest.raises(ValueError):
        trial.suggest_categorical("c", [1, "a"])


def test_suggest_categorical_rejects_empty(study):
    trial = study.ask()
    with pytest.raises(ValueError):
        trial.suggest_categorical("c", [])

# --- Memoisation ---


def test_suggestion_is_idempotent(study):
    """
    Tests that asking for the same name twice returns the recorded value
    without consulting the sampler again.
    """
    trial = study.ask()
    first = trial.suggest_float("lr", 1e-5, 1e-1, log=True)
    for _ in range(5):
        assert trial.suggest_float("lr", 1e-5, 1e-1, log=True) == first


def test_first_distribution_wins(study):
    trial = study.ask()
    first = trial.suggest_int("n", 1, 3)
    assert trial.suggest_int("n", 100, 200) == first
    assert trial.distributions["n"] == IntDistribution(1, 3)


def test_suggestions_are_persisted(study):
    trial = study.ask()
    x = trial.suggest_float("x", 0.0, 1.0)
    frozen = study.storage.get_trial(trial.trial_id)
    assert frozen.params == {"x": x}
    assert frozen.distributions["x"] == FloatDistribution(0.0, 1.0)


def test_single_value_range_skips_sampler(study):
    trial = study.ask()
    assert trial.suggest_int("x", 4, 4) == 4
    assert trial.suggest_categorical("c", ["only"]) == "only"


def test_suggest_on_finished_trial_fails(study):
    trial = study.ask()
    study.tell(trial, 1.0)
    with pytest.raises(UpdateFinishedTrialError):
        trial.suggest_int("x", 0, 1)

# --- report / should_prune ---


def test_report_records_intermediate_values(study):
    trial = study.ask()
    trial.report(0.5, 0)
    trial.report(0.4, 1)
    trial.report(0.3, 1)
    assert trial.intermediate_values == {0: 0.5, 1: 0.3}
    assert study.storage.get_trial(trial.trial_id).state == TrialState.RUNNING


def test_report_rejects_bad_steps(study):
    trial = study.ask()
    with pytest.raises(ValueError):
        trial.report(1.0, -1)
    with pytest.raises(TypeError):
        trial.report(1.0, 1.5)


def test_report_rejects_non_numeric_value(study):
    trial = study.ask()
    with pytest.raises(TypeError):
        trial.report("bad", 0)


def test_should_prune_returns_bool(study):
    trial = study.ask()
    trial.report(1.0, 0)
    assert isinstance(trial.should_prune(), bool)


def test_should_prune_does_not_write(study):
    trial = study.ask()
    trial.report(1.0, 0)
    before = study.storage.get_trial(trial.trial_id)
    trial.should_prune()
    assert study.storage.get_trial(trial.trial_id) == before


def test_user_attrs(study):
    trial = study.ask()
    trial.set_user_attr("note", {"k": 1})
    assert trial.user_attrs == {"note": {"k": 1}}


def test_trial_numbers_are_sequential(storage):
    s = create_study(study_name="numbers", storage=storage, sampler=RandomSampler(seed=1))
    assert [s.ask().number for _ in range(3)] == [0, 1, 2]
