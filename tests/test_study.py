import pandas as pd
import pytest

from studyflow import (
    DuplicatedStudyError,
    StudyDirection,
    StudyNotFoundError,
    TrialState,
    UpdateFinishedTrialError,
    copy_study,
    create_study,
    delete_study,
    get_all_study_names,
    load_study,
)
from studyflow.samplers import RandomSampler
from studyflow.storage import InMemoryStorage


def _tell_values(study, values):
    for v in values:
        trial = study.ask()
        trial.suggest_float("x", 0.0, 10.0)
        study.tell(trial, v)

# --- Creation ---


def test_create_study_defaults():
    """
    Tests that a study without arguments is an in-memory minimizing study.
    """
    study = create_study()
    assert study.direction == StudyDirection.MINIMIZE
    assert study.study_name.startswith("no-name-")
    assert isinstance(study.storage, InMemoryStorage)
    assert study.trials == []


def test_create_study_invalid_direction(storage):
    with pytest.raises(ValueError, match="minimize"):
        create_study(study_name="s", storage=storage, direction="minimise")
    assert get_all_study_names(storage) == []


def test_create_study_load_if_exists(storage):
    """
    Tests that re-creating a study attaches to it and keeps its direction.
    """
    first = create_study(study_name="s", storage=storage, direction="maximize")
    _tell_values(first, [1.0])
    second = create_study(study_name="s", storage=storage, direction="minimize")
    assert second.direction == StudyDirection.MAXIMIZE
    assert len(second.trials) == 1


def test_create_study_duplicate_without_load(storage):
    create_study(study_name="s", storage=storage)
    with pytest.raises(DuplicatedStudyError):
        create_study(study_name="s", storage=storage, load_if_exists=False)


def test_create_study_with_sqlite_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'url.db'}"
    study = create_study(study_name="s", storage=url)
    _tell_values(study, [2.0])
    assert load_study("s", url).best_value == 2.0


def test_load_missing_study(storage):
    with pytest.raises(StudyNotFoundError):
        load_study("missing", storage)


def test_get_all_study_names(storage):
    for name in ("a", "b", "c"):
        create_study(study_name=name, storage=storage)
    assert get_all_study_names(storage) == ["a", "b", "c"]


def test_delete_study(storage):
    study = create_study(study_name="gone", storage=storage)
    _tell_values(study, [1.0, 2.0])
    delete_study("gone", storage)
    assert "gone" not in get_all_study_names(storage)
    with pytest.raises(StudyNotFoundError):
        load_study("gone", storage)


def test_copy_study(storage, sqlite_storage):
    """
    Tests that a copy carries direction, trials, intermediate values and attributes.
    """
    source = create_study(study_name="src", storage=storage, direction="maximize")
    source.set_user_attr("owner", "team-a")
    trial = source.ask()
    trial.suggest_int("n", 1, 5)
    trial.report(0.5, 0)
    trial.set_user_attr("tag", "first")
    source.tell(trial, 3.0)
    pruned = source.ask()
    source.tell(pruned, prune=True)

    copied = copy_study("src", storage, sqlite_storage, to_study_name="dst")
    assert copied.study_name == "dst"
    assert copied.direction == StudyDirection.MAXIMIZE
    assert copied.user_attrs == {"owner": "team-a"}
    assert [t.state for t in copied.trials] == [TrialState.COMPLETE, TrialState.PRUNED]
    first = copied.trials[0]
    assert first.params == source.trials[0].params
    assert first.intermediate_values == {0: 0.5}
    assert first.user_attrs == {"tag": "first"}
    assert copied.best_value == 3.0


def test_copy_study_keeps_name_by_default(storage):
    create_study(study_name="same", storage=storage)
    target = InMemoryStorage()
    copy_study("same", storage, target)
    assert get_all_study_names(target) == ["same"]


def test_copy_study_refuses_existing_target(storage):
    create_study(study_name="a", storage=storage)
    create_study(study_name="b", storage=storage)
    with pytest.raises(DuplicatedStudyError):
        copy_study("a", storage, storage, to_study_name="b")

# --- ask / tell ---


def test_tell_requires_value_or_prune(study):
    trial = study.ask()
    with pytest.raises(ValueError):
        study.tell(trial)
    assert study.storage.get_trial(trial.trial_id).state == TrialState.RUNNING


def test_tell_prune_ignores_value(study):
    trial = study.ask()
    frozen = study.tell(trial, 1.0, prune=True)
    assert frozen.state == TrialState.PRUNED
    assert frozen.value is None


def test_tell_twice_fails(study):
    trial = study.ask()
    study.tell(trial, 1.0)
    with pytest.raises(UpdateFinishedTrialError):
        study.tell(trial, 2.0)
    with pytest.raises(UpdateFinishedTrialError):
        study.tell(trial, prune=True)


def test_tell_unwraps_single_element_sequence(study):
    trial = study.ask()
    assert study.tell(trial, [0.25]).value == 0.25


def test_tell_rejects_multiple_values(study):
    trial = study.ask()
    with pytest.raises(ValueError, match="single-objective"):
        study.tell(trial, [1.0, 2.0])


def test_tell_rejects_non_numeric(study):
    trial = study.ask()
    with pytest.raises(ValueError):
        study.tell(trial, "abc")


def test_tell_nan_fails_trial(study):
    trial = study.ask()
    frozen = study.tell(trial, float("nan"))
    assert frozen.state == TrialState.FAIL
    assert frozen.value is None


def test_tell_by_trial_number(study):
    study.ask()
    study.tell(0, 4.0)
    assert study.trials[0].value == 4.0


def test_tell_rejects_foreign_trial(storage):
    a = create_study(study_name="a", storage=storage)
    b = create_study(study_name="b", storage=storage)
    trial = a.ask()
    with pytest.raises(ValueError):
        b.tell(trial, 1.0)

# --- Best results ---


@pytest.mark.parametrize("direction, expected", [("minimize", 3.0), ("maximize", 7.0)])
def test_best_value_follows_direction(storage, direction, expected):
    """
    Tests that the best value is the min or max of {5, 3, 7} by direction.
    """
    study = create_study(study_name="best", storage=storage, direction=direction)
    _tell_values(study, [5.0, 3.0, 7.0])
    assert study.best_value == expected
    assert study.best_trial.value == expected
    assert "x" in study.best_params


def test_best_ignores_non_complete_trials(study):
    _tell_values(study, [5.0])
    pruned = study.ask()
    study.tell(pruned, prune=True)
    study.ask()  # left RUNNING
    failed = study.ask()
    study.tell(failed, float("nan"))
    assert study.best_value == 5.0


def test_best_without_completed_trials_fails(study):
    trial = study.ask()
    study.tell(trial, prune=True)
    with pytest.raises(ValueError):
        study.best_trial
    with pytest.raises(ValueError):
        study.best_value
    with pytest.raises(ValueError):
        study.best_params

# --- Maintenance and reporting ---


def test_fail_stale_trials(study):
    running = study.ask()
    done = study.ask()
    study.tell(done, 1.0)
    assert study.fail_stale_trials(grace_period=-1.0) == [running.number]
    assert study.trials[running.number].state == TrialState.FAIL
    assert study.fail_stale_trials(grace_period=-1.0) == []


def test_get_trials_by_state(study):
    _tell_values(study, [1.0, 2.0])
    study.tell(study.ask(), prune=True)
    assert len(study.get_trials(states=(TrialState.COMPLETE,))) == 2
    assert len(study.get_trials(states=(TrialState.PRUNED,))) == 1


def test_get_trials_dataframe(study):
    _tell_values(study, [1.0, 2.0])
    df = study.get_trials_dataframe()
    assert isinstance(df, pd.DataFrame)
    assert len(df) == 2
    assert {"number", "value", "state", "params_x"} <= set(df.columns)
    assert list(df["state"]) == ["COMPLETE", "COMPLETE"]


def test_get_trials_dataframe_empty(study):
    assert study.get_trials_dataframe().empty


def test_print_summary(study, capsys):
    _tell_values(study, [1.0, 0.5])
    study.print_summary()
    out = capsys.readouterr().out
    assert "Best Value: 0.500000" in out
    assert "COMPLETE: 2" in out


def test_ask_tell_sampler_reproducibility(storage):
    """
    Tests that two studies with the same sampler seed propose the same values.
    """
    params = []
    for name in ("r1", "r2"):
        study = create_study(study_name=name, storage=storage, sampler=RandomSampler(seed=123))
        values = []
        for _ in range(3):
            trial = study.ask()
            values.append((trial.suggest_float("x", -1.0, 1.0), trial.suggest_int("n", 0, 9)))
            study.tell(trial, 0.0)
        params.append(values)
    assert params[0] == params[1]
