"""Evaluation metrics for fitted classifiers and regressors.

Thin wrappers over `sklearn.metrics` that accept native label types and share
one set of edge-case rules:

1. Inputs of different lengths raise `ValueError`.
2. Empty inputs score 0 (an empty matrix for `confusion_matrix`).
3. Precision, recall and F1 score one positive label against the rest and
   return 0 when their denominator is 0.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import numpy as np
from sklearn import metrics as sk_metrics

from treekit.tree.node import Label

__all__ = [
    "accuracy_score",
    "confusion_matrix",
    "f1_score",
    "mean_absolute_error",
    "mean_squared_error",
    "precision_score",
    "r_squared",
    "recall_score",
]

# ---------------------------------------------------------------------------
# Public interface -- Classification
# ---------------------------------------------------------------------------


def accuracy_score(y_true: Sequence[Label], y_pred: Sequence[Label]) -> float:
    """Return the fraction of exactly matching predictions.

    Args:
        y_true (Sequence[Label]): True labels.
        y_pred (Sequence[Label]): Predicted labels.

    Returns:
        float: Accuracy in [0, 1]; 0 for empty input.

    Raises:
        ValueError: If the inputs differ in length.

    Examples:
        >>> accuracy_score(["A", "B", "A", "C", "B"], ["A", "C", "A", "C", "B"])
        0.8
    """
    _check_lengths(y_true, y_pred)
    if len(y_true) == 0:
        return 0.0
    true_codes, pred_codes = _encode_labels(y_true, y_pred)
    return float(sk_metrics.accuracy_score(true_codes, pred_codes))


def precision_score(y_true: Sequence[Label], y_pred: Sequence[Label], positive_label: Label) -> float:
    """Return `TP / (TP + FP)` for one positive label.

    Args:
        y_true (Sequence[Label]): True labels.
        y_pred (Sequence[Label]): Predicted labels.
        positive_label (Label): The label treated as positive.

    Returns:
        float: Precision; 0 when nothing was predicted positive.

    Raises:
        ValueError: If the inputs differ in length.

    Examples:
        >>> precision_score(["A", "B", "A"], ["A", "A", "C"], "A")
        0.5
    """
    _check_lengths(y_true, y_pred)
    if len(y_true) == 0:
        return 0.0
    true_mask, pred_mask = _one_vs_rest(y_true, y_pred, positive_label)
    return float(sk_metrics.precision_score(true_mask, pred_mask, zero_division=0))


def recall_score(y_true: Sequence[Label], y_pred: Sequence[Label], positive_label: Label) -> float:
    """Return `TP / (TP + FN)` for one positive label.

    Args:
        y_true (Sequence[Label]): True labels.
        y_pred (Sequence[Label]): Predicted labels.
        positive_label (Label): The label treated as positive.

    Returns:
        float: Recall; 0 when the label never occurs in `y_true`.

    Raises:
        ValueError: If the inputs differ in length.
    """
    _check_lengths(y_true, y_pred)
    if len(y_true) == 0:
        return 0.0
    true_mask, pred_mask = _one_vs_rest(y_true, y_pred, positive_label)
    return float(sk_metrics.recall_score(true_mask, pred_mask, zero_division=0))


def f1_score(y_true: Sequence[Label], y_pred: Sequence[Label], positive_label: Label) -> float:
    """Return the harmonic mean of precision and recall for one positive label.

    Args:
        y_true (Sequence[Label]): True labels.
        y_pred (Sequence[Label]): Predicted labels.
        positive_label (Label): The label treated as positive.

    Returns:
        float: F1 score; 0 when precision and recall are both 0.

    Raises:
        ValueError: If the inputs differ in length.
    """
    _check_lengths(y_true, y_pred)
    if len(y_true) == 0:
        return 0.0
    true_mask, pred_mask = _one_vs_rest(y_true, y_pred, positive_label)
    return float(sk_metrics.f1_score(true_mask, pred_mask, zero_division=0))


def confusion_matrix(
    y_true: Sequence[Label],
    y_pred: Sequence[Label],
    labels: Sequence[Label] | None = None,
) -> np.ndarray:
    """Count (true label, predicted label) pairs.

    Args:
        y_true (Sequence[Label]): True labels.
        y_pred (Sequence[Label]): Predicted labels.
        labels (Sequence[Label] | None): Row and column order; defaults to the
            labels of `y_true` then `y_pred` in first-seen order.

    Returns:
        np.ndarray: Integer matrix; entry `[i, j]` counts samples with true
            label `labels[i]` predicted as `labels[j]`.

    Raises:
        ValueError: If the inputs differ in length, or `labels` omits a label that occurs in them.

    Examples:
        >>> confusion_matrix(["A", "B", "A"], ["A", "A", "B"]).tolist()
        [[1, 1], [1, 0]]
    """
    _check_lengths(y_true, y_pred)
    if len(y_true) == 0:
        return np.zeros((0, 0), dtype=np.int64)
    true_codes, pred_codes = _encode_labels(y_true, y_pred, labels)
    n_labels = len(labels) if labels is not None else len(set(true_codes) | set(pred_codes))
    return sk_metrics.confusion_matrix(true_codes, pred_codes, labels=list(range(n_labels)))


# ---------------------------------------------------------------------------
# Public interface -- Regression
# ---------------------------------------------------------------------------


def mean_absolute_error(y_true: Sequence[float], y_pred: Sequence[float]) -> float:
    """Return the mean absolute difference between targets and predictions.

    Examples:
        >>> mean_absolute_error([3, -0.5, 2, 7], [2.5, 0.0, 2, 8])
        0.5
    """
    _check_lengths(y_true, y_pred)
    if len(y_true) == 0:
        return 0.0
    return float(sk_metrics.mean_absolute_error(y_true, y_pred))


def mean_squared_error(y_true: Sequence[float], y_pred: Sequence[float]) -> float:
    """Return the mean squared difference between targets and predictions.

    Examples:
        >>> mean_squared_error([3, -0.5, 2, 7], [2.5, 0.0, 2, 8])
        0.375
    """
    _check_lengths(y_true, y_pred)
    if len(y_true) == 0:
        return 0.0
    return float(sk_metrics.mean_squared_error(y_true, y_pred))


def r_squared(y_true: Sequence[float], y_pred: Sequence[float]) -> float:
    """Return the coefficient of determination.

    Constant targets score 1 for a perfect prediction and 0 otherwise.

    Args:
        y_true (Sequence[float]): True targets.
        y_pred (Sequence[float]): Predicted targets.

    Returns:
        float: The R² score; NaN for fewer than two samples.

    Raises:
        ValueError: If the inputs differ in length.
    """
    _check_lengths(y_true, y_pred)
    if len(y_true) < 2:
        return math.nan
    return float(sk_metrics.r2_score(y_true, y_pred, force_finite=True))


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _check_lengths(y_true: Sequence[Any], y_pred: Sequence[Any]) -> None:
    if len(y_true) != len(y_pred):
        raise ValueError(f"y_true and y_pred must have the same length, got {len(y_true)} and {len(y_pred)}")


def _encode_labels(
    y_true: Sequence[Label],
    y_pred: Sequence[Label],
    labels: Sequence[Label] | None = None,
) -> tuple[list[int], list[int]]:
    # Integer codes keep sklearn away from mixed label types
    if labels is None:
        labels = list(dict.fromkeys([*y_true, *y_pred]))
    codes = {label: code for code, label in enumerate(labels)}
    missing = [label for label in dict.fromkeys([*y_true, *y_pred]) if label not in codes]
    if missing:
        raise ValueError(f"labels does not include {missing}, which occur in y_true or y_pred")
    return [codes[label] for label in y_true], [codes[label] for label in y_pred]


def _one_vs_rest(
    y_true: Sequence[Label],
    y_pred: Sequence[Label],
    positive_label: Label,
) -> tuple[list[int], list[int]]:
    return [int(label == positive_label) for label in y_true], [int(label == positive_label) for label in y_pred]
