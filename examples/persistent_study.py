import os
import time

from studyflow import create_study, load_study

# Define the search space
search_space = {'x': (-5.0, 5.0), 'y': (-5.0, 5.0)}


# Define a simple objective function
def objective(trial, x, y):
    return (x - 2) ** 2 + (y - 3) ** 2


# Define the database file path
db_file = "studyflow_resume_test.db"
storage = f"sqlite:///{db_file}"

# Clean up previous runs if the file exists
if os.path.exists(db_file):
    os.remove(db_file)

print("="*60)
print("🚀 PART 1: Running initial trials")
print("="*60)

# Create a new study
study = create_study(study_name="resume-test", storage=storage, direction="minimize")

# Run the first batch of trials
study.optimize(objective, n_trials=5, search_space=search_space, verbose=True)

print("\n📋 Initial study summary:")
study.print_summary()
best_trial_part1 = study.best_trial

print(f"\n✅ Best trial from Part 1 is #{best_trial_part1.number} with value {best_trial_part1.value:.4f}")

print("\n... Simulating a crash and restart ...\n")
time.sleep(2)

print("="*60)
print("🚀 PART 2: Resuming the study")
print("="*60)

# A new Study object connected to the same database sees the previous trials
resumed_study = load_study("resume-test", storage)

trials_df = resumed_study.get_trials_dataframe()
print(f"✅ Resumed study. Found {len(trials_df)} existing trials.")
assert len(trials_df) == 5, "Should have loaded the 5 trials from the first run."

# Trials left RUNNING by a crashed process would be finished as FAIL here
resumed_study.fail_stale_trials(grace_period=0.0)

print("\n🚀 Continuing optimization...")
resumed_study.optimize(objective, n_trials=5, search_space=search_space, verbose=True)

print("\n📋 Final study summary:")
resumed_study.print_summary()
best_trial_part2 = resumed_study.best_trial

print(f"\n✅ Best trial from Part 2 is #{best_trial_part2.number} with value {best_trial_part2.value:.4f}")

final_df = resumed_study.get_trials_dataframe()
print(f"\n📊 Final validation: Total trials in DB = {len(final_df)}")
assert len(final_df) == 10, "Should have a total of 10 trials after resuming."

print("\n🎉 Persistence and resume functionality verified successfully!")

# Clean up the test database
resumed_study.storage.close()
study.storage.close()
os.remove(db_file)
