"""
Evaluation Module for the Youth Substance-Use Analysis
Held-out classification / regression reports and importance ranking.
"""

import pandas as pd
import numpy as np
from sklearn.metrics import (
    accuracy_score, confusion_matrix, precision_recall_fscore_support,
    roc_curve, roc_auc_score, mean_squared_error,
)

from youthuse.errors import ConfigurationError, EmptyInputError, ShapeMismatchError


def _as_python(value):
    """numpy scalar -> int/float so report keys compare and print cleanly."""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def check_prediction_inputs(y_true, y_pred, step: str = "evaluate"):
    """
    Validate truth/prediction vectors.

    Returns:
        y_true, y_pred as 1-D numpy arrays.
    """
    y_true = np.asarray(y_true).ravel()
    y_pred = np.asarray(y_pred).ravel()

    if len(y_true) == 0:
        raise EmptyInputError("Held-out set is empty", step=step, n_records=0)
    if len(y_true) != len(y_pred):
        raise ShapeMismatchError(
            f"Predictions have length {len(y_pred)}, truth has length {len(y_true)}",
            step=step, n_records=len(y_true),
        )
    return y_true, y_pred


def roc_report(y_true, y_score) -> dict | None:
    """
    ROC curve by sweeping the decision threshold over the positive-class score.
    Returns None when the truth vector holds a single class.
    """
    y_true, y_score = check_prediction_inputs(y_true, y_score, step="roc")
    if np.unique(y_true).size != 2:
        return None

    fpr, tpr, thresholds = roc_curve(y_true, y_score, drop_intermediate=False)
    return {
        "fpr": fpr,
        "tpr": tpr,
        "thresholds": thresholds,
        "auc": float(roc_auc_score(y_true, y_score)),
    }


def classification_report(y_true, y_pred, y_score=None, labels=None) -> dict:
    """
    Confusion matrix, accuracy, per-class precision/recall and (binary) ROC.

    Args:
        y_true: Observed labels.
        y_pred: Predicted labels.
        y_score: Optional positive-class scores (binary targets only).
        labels: Class order (default: sorted union of observed and predicted).

    Returns:
        Dict with confusion_matrix (observed x predicted DataFrame),
        confusion_counts {(observed, predicted): count} for non-zero cells,
        accuracy, per_class, n, and roc / roc_auc (None / NaN if unavailable).
    """
    y_true, y_pred = check_prediction_inputs(y_true, y_pred, step="classification_report")

    if labels is None:
        labels = np.unique(np.concatenate([y_true, y_pred]))
    labels = [_as_python(lab) for lab in labels]

    cm = confusion_matrix(y_true, y_pred, labels=labels)
    cm_df = pd.DataFrame(
        cm,
        index=pd.Index(labels, name="observed"),
        columns=pd.Index(labels, name="predicted"),
    )
    counts = {
        (obs, pred): int(cm[i, j])
        for i, obs in enumerate(labels)
        for j, pred in enumerate(labels)
        if cm[i, j] > 0
    }

    precision, recall, _, support = precision_recall_fscore_support(
        y_true, y_pred, labels=labels, zero_division=0,
    )
    per_class = pd.DataFrame({
        "class": labels,
        "precision": precision,
        "recall": recall,
        "support": support,
    })

    report = {
        "n": int(len(y_true)),
        "accuracy": float(accuracy_score(y_true, y_pred)),
        "confusion_matrix": cm_df,
        "confusion_counts": counts,
        "per_class": per_class,
        "roc": None,
        "roc_auc": np.nan,
    }

    if y_score is not None and len(labels) <= 2:
        roc = roc_report(y_true, y_score)
        if roc is not None:
            report["roc"] = roc
            report["roc_auc"] = roc["auc"]

    return report


def regression_report(y_true, y_pred, train_mean: float) -> dict:
    """
    Model MSE against a constant training-mean baseline.

    relative_error_reduction = 1 - model_mse / baseline_mse. With a zero
    baseline MSE it is 1.0 for a perfect model and -inf otherwise.
    """
    y_true, y_pred = check_prediction_inputs(y_true, y_pred, step="regression_report")
    y_true = y_true.astype(float)
    y_pred = y_pred.astype(float)

    baseline = np.full(len(y_true), float(train_mean))
    baseline_mse = float(mean_squared_error(y_true, baseline))
    model_mse = float(mean_squared_error(y_true, y_pred))

    if baseline_mse > 0:
        reduction = 1.0 - model_mse / baseline_mse
    elif model_mse == 0:
        reduction = 1.0
    else:
        reduction = float("-inf")

    return {
        "n": int(len(y_true)),
        "train_mean": float(train_mean),
        "baseline_mse": baseline_mse,
        "model_mse": model_mse,
        "relative_error_reduction": reduction,
    }


def rank_importances(importances, feature_names=None) -> pd.DataFrame:
    """
    Rank native per-feature importance scores, highest first.
    Ties are broken by feature name so the order is deterministic.
    """
    if isinstance(importances, pd.Series) and feature_names is None:
        feature_names = list(importances.index)
    values = np.asarray(importances, dtype=float).ravel()

    if feature_names is None:
        feature_names = [f"X{i}" for i in range(len(values))]
    feature_names = [str(f) for f in feature_names]

    if len(values) == 0:
        raise EmptyInputError("No importance scores to rank", step="rank_importances", n_records=0)
    if len(values) != len(feature_names):
        raise ShapeMismatchError(
            f"{len(values)} importance scores for {len(feature_names)} features",
            step="rank_importances", n_records=len(values),
        )

    ranked = pd.DataFrame({"feature": feature_names, "importance": values})
    ranked = ranked.sort_values(
        ["importance", "feature"], ascending=[False, True], kind="mergesort",
    ).reset_index(drop=True)
    ranked["rank"] = range(1, len(ranked) + 1)
    return ranked


def positive_class_scores(model, X):
    """Positive-class probability for binary classifiers, else None."""
    if not hasattr(model, "predict_proba"):
        return None
    classes = getattr(model, "classes_", None)
    if classes is None or len(classes) != 2:
        return None
    return model.predict_proba(X)[:, 1]


def evaluate_model(model, X_test, y_test, task: str,
                   train_mean: float | None = None) -> dict:
    """
    Evaluate a fitted model on the held-out set.

    Args:
        model: Fitted estimator exposing predict (and predict_proba for ROC).
        X_test, y_test: Held-out features and truth.
        task: "classification" or "regression".
        train_mean: Training-target mean (regression baseline).

    Returns:
        classification_report or regression_report dict.
    """
    if len(y_test) == 0:
        raise EmptyInputError("Held-out set is empty", step="evaluate", n_records=0)

    if task == "classification":
        y_pred = model.predict(X_test)
        y_score = positive_class_scores(model, X_test)
        return classification_report(y_test, y_pred, y_score=y_score)

    if task == "regression":
        if train_mean is None:
            raise ConfigurationError(
                "Regression evaluation needs the training-set mean",
                step="evaluate", n_records=len(y_test),
            )
        y_pred = model.predict(X_test)
        return regression_report(y_test, y_pred, train_mean)

    raise ConfigurationError(
        f"Unknown task '{task}'. Use: classification, regression.",
        step="evaluate", n_records=len(y_test),
    )


_SCALAR_METRICS = ("n", "accuracy", "roc_auc", "baseline_mse", "model_mse",
                   "relative_error_reduction")


def report_to_json(report: dict) -> dict:
    """
    JSON-safe summary of a report: scalar metrics as plain floats, with NaN
    and infinities written as null, plus "observed->predicted" confusion counts.
    """
    out = {}
    for key in _SCALAR_METRICS:
        if key not in report:
            continue
        value = report[key]
        if isinstance(value, (np.floating, float)):
            value = float(value) if np.isfinite(value) else None
        out[key] = value
    if "confusion_counts" in report:
        out["confusion_counts"] = {
            f"{obs}->{pred}": n for (obs, pred), n in report["confusion_counts"].items()
        }
    return out
