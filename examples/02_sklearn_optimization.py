"""
Example 2: Scikit-learn Model Optimization with Pruning
-------------------------------------------------------

This example demonstrates how to use studyflow to optimize the
hyperparameters of a Scikit-learn RandomForestClassifier, including how
to report intermediate values for early stopping (pruning).
"""
import os

import numpy as np
from sklearn.datasets import load_breast_cancer
from sklearn.ensemble import RandomForestClassifier
from sklearn.model_selection import train_test_split

from studyflow import SearchSpace, TrialPruned, create_study
from studyflow.pruners import MedianPruner
from studyflow.visualization import plot_intermediate_values, plot_optimization_history

X, y = load_breast_cancer(return_X_y=True)
X_train, X_test, y_train, y_test = train_test_split(X, y, test_size=0.3, random_state=42)


def objective(trial, params):
    """
    Trains a RandomForestClassifier and reports intermediate scores to enable pruning.
    """
    model = RandomForestClassifier(
        max_depth=params.max_depth,
        min_samples_split=params.min_samples_split,
        max_features=params.max_features,
        warm_start=True,  # Important for iterative training
        random_state=42,
    )

    # Simulate iterative training by increasing n_estimators and reporting scores
    n_steps = 10
    accuracy = 0.0
    estimator_schedule = np.linspace(10, params.n_estimators, n_steps, dtype=int)

    for step, n_est in enumerate(estimator_schedule):
        model.n_estimators = int(n_est)
        model.fit(X_train, y_train)
        accuracy = model.score(X_test, y_test)

        # The study's pruner decides from the reported values
        trial.report(accuracy, step)
        if trial.should_prune():
            raise TrialPruned()

    return accuracy


def main():
    """
    Run the Scikit-learn optimization study with a pruner enabled.
    """
    print("\nRunning Example: Scikit-learn Optimization with Pruning")
    print("Goal: Maximize accuracy, with early stopping of unpromising trials.")
    print("--------------------------------------------------------------------")

    # 1. Define the search space
    search_space = (
        SearchSpace()
        .add_int('n_estimators', 10, 200)
        .add_int('max_depth', 3, 25)
        .add_int('min_samples_split', 2, 20)
        .add_categorical('max_features', ['sqrt', 'log2'])
    )

    # 2. Create and run the study with a pruner
    print("\nNote: A 'MedianPruner' is enabled. Poorly performing trials may be stopped early.")
    study = create_study(
        study_name='sklearn_rf_pruning_example',
        direction='maximize',
        pruner=MedianPruner(n_startup_trials=5, n_warmup_steps=2),
    )
    study.optimize(objective, n_trials=30, search_space=search_space, n_jobs=min(2, os.cpu_count() or 1),
                   verbose=True)
    study.print_summary()

    # 3. Visualize the results
    plot_optimization_history(study, save_path='sklearn_optimization_pruning.png')
    plot_intermediate_values(study, save_path='sklearn_learning_curves.png')
    print("\n✅ Visualizations saved to 'sklearn_optimization_pruning.png' and 'sklearn_learning_curves.png'")


if __name__ == "__main__":
    main()
