import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pytest  # noqa: E402

from studyflow.visualization import plot_intermediate_values, plot_optimization_history  # noqa: E402


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


def _run(study, n=5):
    def objective(trial):
        x = trial.suggest_float("x", -2.0, 2.0)
        for step in range(3):
            trial.report(x ** 2 + 1.0 / (step + 1), step)
        return x ** 2

    study.optimize(objective, n_trials=n)


def test_plot_optimization_history(study, tmp_path):
    _run(study)
    path = tmp_path / "history.png"
    fig = plot_optimization_history(study, save_path=str(path))
    assert fig is not None
    assert len(fig.axes) == 2
    assert path.is_file()


def test_plot_optimization_history_needs_two_trials(study, capsys):
    _run(study, n=1)
    assert plot_optimization_history(study) is None
    assert "Not enough" in capsys.readouterr().out


def test_plot_intermediate_values(study):
    _run(study)
    fig = plot_intermediate_values(study)
    assert fig is not None
    assert len(fig.axes[0].lines) == len(study.trials)


def test_plot_intermediate_values_without_reports(study):
    study.optimize(lambda trial: 1.0, n_trials=2)
    assert plot_intermediate_values(study) is None
