"""Demonstrates how to enable and configure logging in treekit.

treekit logging is disabled by default. Users opt in by calling ``enable_logging()``,
which returns a ``LoggingHandle``. The handle can be used as a context manager
(``with enable_logging(): ...``) or disabled manually via ``handle.disable()``.
When the last active handle is disabled, treekit logging is automatically turned off.

Key concepts shown here:

- ``level``: controls the minimum log level. The custom ``TRAINING`` level
  (numeric value 25, between INFO and WARNING) reports every estimator fit with
  its data shape and is the default. ``DEBUG`` adds tree-size, pruning and forest
  summaries; ``TRACE`` adds one record per accepted split.
- ``log_format``: ``"short"`` shows ``timestamp | level | function - message``;
  ``"full"`` adds the module and line number.
- Warnings: a criterion that does not fit the task is replaced by the task
  default and reported at WARNING.
- Automatic cleanup: logging is re-disabled when the context manager exits.
"""

import polars as pl

from treekit import DecisionTreeClassifier, RandomForestRegressor, enable_logging
from treekit.datasets import from_dataframe

df_weather = pl.DataFrame({
    "temperature": [30.0, 25.0, None, 12.0, 8.0, 18.0, 22.0, 5.0],
    "outlook": ["sunny", "sunny", "rain", "rain", "snow", "cloudy", "cloudy", "snow"],
    "play": ["yes", "yes", "no", "no", "no", "yes", "yes", "no"],
})
dataset = from_dataframe(df_weather, target="play")

# DEBUG level with the full format shows build and pruning summaries with their source location
with enable_logging(level="DEBUG", log_format="full"):
    model = DecisionTreeClassifier(feature_types=dataset.feature_types, ccp_alpha=0.01)
    model.fit(dataset.X, dataset.y)
    print(f"\nDepth: {model.get_depth()}, leaves: {model.get_n_leaves()}\n")

# TRACE level reports every accepted split
with enable_logging(level="TRACE"):
    DecisionTreeClassifier(feature_types=dataset.feature_types, max_depth=2).fit(dataset.X, dataset.y)

# The default TRAINING level shows one line per fit; the mismatched criterion is logged as a warning
handle = enable_logging()
X = [[float(i)] for i in range(20)]
y = [float(i) ** 0.5 for i in range(20)]
forest = RandomForestRegressor(n_estimators=10, criterion="gini", random_state=0).fit(X, y)
print(f"\nForest prediction at 9.0: {forest.predict([[9.0]])[0]:.3f}\n")
handle.disable()

# Logging disabled again here
forest.fit(X, y)
