import matplotlib.pyplot as plt

from .core.history import StudyDirection
from .core.trial import TrialState


def plot_optimization_history(study, save_path=None):
    """
    Plots the optimization history of a study.

    This function shows the objective value of every completed trial together
    with the best value found so far, and the distribution of values.

    Args:
        study (Study): The study to visualize.
        save_path (str, optional): If provided, saves the plot to this file path.

    Returns:
        matplotlib.figure.Figure: The figure, or None if fewer than two trials completed.
    """
    complete_trials = study.get_trials(states=(TrialState.COMPLETE,))
    if len(complete_trials) < 2:
        print("Not enough completed trials to generate plots.")
        return None

    values = [t.value for t in complete_trials]
    trial_numbers = [t.number for t in complete_trials]

    # Calculate cumulative best value
    best_values = []
    current_best = values[0]
    for value in values:
        if study.direction == StudyDirection.MAXIMIZE:
            current_best = max(current_best, value)
        else:  # minimize
            current_best = min(current_best, value)
        best_values.append(current_best)

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 5))
    fig.suptitle(f"Optimization History for '{study.study_name}'", fontsize=16)

    # Plot 1: Optimization History
    ax1.plot(trial_numbers, values, 'o', alpha=0.5, markersize=4, label='Trial Values')
    ax1.plot(trial_numbers, best_values, 'r-', linewidth=2.5, label='Best Value')
    ax1.set_xlabel('Trial Number')
    ax1.set_ylabel('Objective Value')
    ax1.set_title('Optimization History')
    ax1.legend()
    ax1.grid(True, alpha=0.4)

    # Plot 2: Value Distribution
    ax2.hist(values, bins=min(15, len(values) // 2 + 1), alpha=0.75, edgecolor='black')
    best_val = study.best_value
    ax2.axvline(best_val, color='red', linestyle='--', linewidth=2, label=f'Best Value: {best_val:.4f}')
    ax2.set_xlabel('Objective Value')
    ax2.set_ylabel('Frequency')
    ax2.set_title('Value Distribution')
    ax2.legend()
    ax2.grid(True, alpha=0.4)

    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150)
    return fig


def plot_intermediate_values(study, save_path=None):
    """
    Plots the learning curve reported by each trial.

    Pruned trials are drawn dashed so that early stops stand out.

    Args:
        study (Study): The study to visualize.
        save_path (str, optional): If provided, saves the plot to this file path.

    Returns:
        matplotlib.figure.Figure: The figure, or None if no trial reported a value.
    """
    trials = [t for t in study.trials if t.intermediate_values]
    if not trials:
        print("No intermediate values reported.")
        return None

    fig, ax = plt.subplots(figsize=(8, 5))
    for t in trials:
        steps = sorted(t.intermediate_values)
        linestyle = '--' if t.state == TrialState.PRUNED else '-'
        ax.plot(steps, [t.intermediate_values[s] for s in steps], linestyle, alpha=0.7,
                label=f'Trial {t.number}')
    ax.set_xlabel('Step')
    ax.set_ylabel('Intermediate Value')
    ax.set_title(f"Intermediate Values for '{study.study_name}'")
    ax.grid(True, alpha=0.4)
    if len(trials) <= 10:
        ax.legend()

    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150)
    return fig
