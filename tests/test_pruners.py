import pytest

from studyflow import FrozenTrial, StudyDirection, StudyHistory, TrialState, create_study
from studyflow.pruners import (
    MedianPruner,
    NopPruner,
    PercentilePruner,
    SuccessiveHalvingPruner,
)


def _history(completed_values, running_values, step=0, direction=StudyDirection.MINIMIZE):
    """
    Builds a history of completed trials that each reported one value at
    ``step``, followed by one running trial with ``running_values`` (step to value).
    """
    trials = [
        FrozenTrial(number=i, trial_id=i, state=TrialState.COMPLETE, value=v,
                    intermediate_values={step: v})
        for i, v in enumerate(completed_values)
    ]
    n = len(trials)
    trials.append(FrozenTrial(number=n, trial_id=n, state=TrialState.RUNNING,
                              intermediate_values=dict(running_values)))
    return StudyHistory("s", direction, trials), n

# --- MedianPruner ---


def test_median_pruner_prunes_worse_than_median():
    """
    Tests that a trial reporting 100 after trials reporting 1, 2 and 3 is pruned.
    """
    pruner = MedianPruner(n_startup_trials=2, n_warmup_steps=0, interval_steps=1, n_min_trials=1)
    history, trial_id = _history([1.0, 2.0, 3.0], {0: 100.0})
    assert pruner.should_prune(history, trial_id)


def test_median_pruner_keeps_better_than_median():
    pruner = MedianPruner(n_startup_trials=2)
    history, trial_id = _history([1.0, 2.0, 3.0], {0: 1.5})
    assert not pruner.should_prune(history, trial_id)


def test_median_pruner_no_pruning_on_startup():
    """
    Tests that the MedianPruner does not prune during the startup phase.
    """
    pruner = MedianPruner(n_startup_trials=5)
    history, trial_id = _history([1.0, 2.0, 3.0], {0: 100.0})
    assert not pruner.should_prune(history, trial_id)


def test_median_pruner_no_pruning_on_warmup():
    """
    Tests that the MedianPruner does not prune during the warmup phase.
    """
    pruner = MedianPruner(n_startup_trials=1, n_warmup_steps=10)
    history, trial_id = _history([1.0, 2.0], {5: 100.0}, step=5)
    assert not pruner.should_prune(history, trial_id)


def test_median_pruner_respects_interval():
    pruner = MedianPruner(n_startup_trials=1, interval_steps=2)
    history, trial_id = _history([1.0, 2.0], {1: 100.0}, step=1)
    assert not pruner.should_prune(history, trial_id)
    history, trial_id = _history([1.0, 2.0], {2: 100.0}, step=2)
    assert pruner.should_prune(history, trial_id)


def test_median_pruner_requires_min_trials_at_step():
    pruner = MedianPruner(n_startup_trials=1, n_min_trials=4)
    history, trial_id = _history([1.0, 2.0, 3.0], {0: 100.0})
    assert not pruner.should_prune(history, trial_id)


def test_median_pruner_maximize():
    """
    Tests that for a maximizing study low values are the ones pruned.
    """
    pruner = MedianPruner(n_startup_trials=1)
    history, trial_id = _history([1.0, 2.0, 3.0], {0: 0.5}, direction=StudyDirection.MAXIMIZE)
    assert pruner.should_prune(history, trial_id)
    history, trial_id = _history([1.0, 2.0, 3.0], {0: 10.0}, direction=StudyDirection.MAXIMIZE)
    assert not pruner.should_prune(history, trial_id)


def test_median_pruner_uses_best_value_so_far():
    """
    Tests that an earlier good report protects a trial from a later bad one.
    """
    pruner = MedianPruner(n_startup_trials=1)
    history, trial_id = _history([1.0, 2.0, 3.0], {0: 0.5, 1: 100.0}, step=1)
    assert not pruner.should_prune(history, trial_id)


def test_median_pruner_without_reports():
    pruner = MedianPruner(n_startup_trials=0)
    history, trial_id = _history([1.0], {})
    assert not pruner.should_prune(history, trial_id)

# --- PercentilePruner ---


def test_percentile_pruner_lower_percentile_is_stricter():
    pruner = PercentilePruner(25.0, n_startup_trials=1)
    history, trial_id = _history([1.0, 2.0, 3.0, 4.0], {0: 1.5})
    assert not pruner.should_prune(history, trial_id)
    history, trial_id = _history([1.0, 2.0, 3.0, 4.0], {0: 2.0})
    assert pruner.should_prune(history, trial_id)


@pytest.mark.parametrize("kwargs", [
    dict(percentile=-1.0),
    dict(percentile=101.0),
    dict(percentile=50.0, n_startup_trials=-1),
    dict(percentile=50.0, n_warmup_steps=-1),
    dict(percentile=50.0, interval_steps=0),
    dict(percentile=50.0, n_min_trials=0),
])
def test_percentile_pruner_invalid_arguments(kwargs):
    with pytest.raises(ValueError):
        PercentilePruner(**kwargs)

# --- SuccessiveHalvingPruner ---


def test_successive_halving_rung_steps():
    pruner = SuccessiveHalvingPruner(min_resource=2, reduction_factor=3, min_early_stopping_rate=1)
    assert [pruner.rung_step(k) for k in range(3)] == [6, 18, 54]


def test_successive_halving_prunes_outside_top_fraction():
    """
    Tests that only the top 1/reduction_factor of a rung is promoted.
    """
    pruner = SuccessiveHalvingPruner(min_resource=1, reduction_factor=2)
    history, trial_id = _history([1.0, 2.0, 3.0, 4.0], {1: 5.0}, step=1)
    assert pruner.should_prune(history, trial_id)
    history, trial_id = _history([1.0, 2.0, 3.0, 4.0], {1: 1.5}, step=1)
    assert not pruner.should_prune(history, trial_id)


def test_successive_halving_waits_for_first_rung():
    pruner = SuccessiveHalvingPruner(min_resource=4, reduction_factor=2)
    history, trial_id = _history([1.0, 2.0], {2: 100.0}, step=4)
    assert not pruner.should_prune(history, trial_id)


def test_successive_halving_maximize():
    pruner = SuccessiveHalvingPruner(min_resource=1, reduction_factor=2)
    history, trial_id = _history([1.0, 2.0, 3.0, 4.0], {1: 0.5}, step=1,
                                 direction=StudyDirection.MAXIMIZE)
    assert pruner.should_prune(history, trial_id)


@pytest.mark.parametrize("kwargs", [
    dict(min_resource=0),
    dict(reduction_factor=1),
    dict(min_early_stopping_rate=-1),
])
def test_successive_halving_invalid_arguments(kwargs):
    with pytest.raises(ValueError):
        SuccessiveHalvingPruner(**kwargs)

# --- Through a study ---


def test_nop_pruner_never_prunes():
    study = create_study(pruner=NopPruner())
    for v in (1.0, 2.0, 3.0):
        trial = study.ask()
        trial.report(v, 0)
        study.tell(trial, v)
    trial = study.ask()
    trial.report(1e9, 0)
    assert not trial.should_prune()


def test_should_prune_in_a_study():
    """
    Tests the median scenario end to end through ask, report and tell.
    """
    study = create_study(pruner=MedianPruner(n_startup_trials=2, n_warmup_steps=0,
                                             interval_steps=1, n_min_trials=1))
    for v in (1.0, 2.0, 3.0):
        trial = study.ask()
        trial.report(v, 0)
        study.tell(trial, v)

    trial = study.ask()
    trial.report(100.0, 0)
    assert trial.should_prune()
    study.tell(trial, prune=True)
    assert study.trials[-1].state == TrialState.PRUNED
