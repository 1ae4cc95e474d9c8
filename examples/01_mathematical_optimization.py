"""
Example 1: Basic Mathematical Optimization
-------------------------------------------

This example demonstrates how to use studyflow to find the maximum
value of a simple 2D mathematical function.

The objective is to maximize: f(x, y) = -(x - 3)^2 - (y + 2)^2 + 10
The known optimal solution is at (x=3, y=-2), with a value of 10.
"""

import time

from studyflow import SearchSpace, create_study
from studyflow.samplers import TPESampler
from studyflow.visualization import plot_optimization_history


def objective(trial, x, y):
    """
    The objective function to be maximized.

    Args:
        trial (Trial): The running trial.
        x (float): Suggested from the search space.
        y (float): Suggested from the search space.

    Returns:
        float: The value of the function for the given hyperparameters.
    """
    # Simulate some computational work
    time.sleep(0.01)

    return -(x - 3)**2 - (y + 2)**2 + 10


def main():
    """
    Run the mathematical optimization study.
    """
    print("Running Example: Basic Mathematical Optimization")
    print("Goal: Maximize f(x, y) = -(x - 3)^2 - (y + 2)^2 + 10")
    print("--------------------------------------------------")

    # 1. Define the search space
    search_space = SearchSpace()
    search_space.add_float('x', -10, 10)
    search_space.add_float('y', -10, 10)

    # 2. Create and run the study
    study = create_study(
        study_name='mathematical_example',
        direction='maximize',
        sampler=TPESampler(n_startup_trials=10, seed=42),
    )
    study.optimize(objective, n_trials=50, search_space=search_space, verbose=True)

    # 3. Print and analyze the results
    best_trial = study.best_trial
    print("\n----- Analysis -----")
    print(f"Optimal value found: {best_trial.value:.6f} (Expected: 10.0)")
    print(f"Optimal params: x={best_trial.params['x']:.4f}, y={best_trial.params['y']:.4f} (Expected: x=3, y=-2)")

    error_x = abs(best_trial.params['x'] - 3.0)
    error_y = abs(best_trial.params['y'] + 2.0)

    if error_x < 0.1 and error_y < 0.1:
        print("✅ Solution found with high accuracy!")
    else:
        print("⚠️ Solution is an approximation. More trials might improve accuracy.")

    # 4. Visualize the optimization process
    plot_optimization_history(study, save_path='mathematical_optimization.png')


if __name__ == "__main__":
    main()
