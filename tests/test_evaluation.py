"""Tests for held-out classification/regression reports and importance ranking."""

import json

import numpy as np
import pandas as pd
import pytest
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor

from youthuse.evaluation import (
    classification_report,
    regression_report,
    rank_importances,
    roc_report,
    evaluate_model,
    check_prediction_inputs,
    report_to_json,
)
from youthuse.errors import ConfigurationError, EmptyInputError, ShapeMismatchError


# ------------------------------------------------------------------
# Classification
# ------------------------------------------------------------------

def test_binary_example_scenario():
    report = classification_report([1, 0, 1, 0], [1, 0, 0, 0])
    assert report["accuracy"] == 0.75
    assert report["confusion_counts"] == {(1, 1): 1, (0, 0): 2, (1, 0): 1}
    assert report["n"] == 4


def test_confusion_matrix_is_observed_by_predicted():
    report = classification_report([1, 0, 1, 0], [1, 0, 0, 0])
    cm = report["confusion_matrix"]
    assert cm.index.name == "observed" and cm.columns.name == "predicted"
    assert cm.loc[1, 0] == 1
    assert cm.loc[0, 1] == 0


def test_per_class_precision_recall():
    report = classification_report([1, 0, 1, 0], [1, 0, 0, 0])
    per_class = report["per_class"].set_index("class")
    assert per_class.loc[1, "precision"] == 1.0
    assert per_class.loc[1, "recall"] == 0.5
    assert per_class.loc[0, "recall"] == 1.0
    assert per_class.loc[0, "support"] == 2


def test_multiclass_report_has_no_roc():
    report = classification_report([0, 1, 2, 3, 4], [0, 1, 2, 4, 4], y_score=[0.1] * 5)
    assert report["roc"] is None
    assert np.isnan(report["roc_auc"])
    assert report["confusion_matrix"].shape == (5, 5)


def test_roc_sweeps_thresholds():
    roc = roc_report([0, 0, 1, 1], [0.1, 0.4, 0.35, 0.8])
    assert roc["auc"] == pytest.approx(0.75)
    assert roc["fpr"][0] == 0.0 and roc["tpr"][0] == 0.0
    assert roc["fpr"][-1] == 1.0 and roc["tpr"][-1] == 1.0
    assert np.all(np.diff(roc["fpr"]) >= 0)


def test_roc_single_class_is_none():
    assert roc_report([1, 1, 1], [0.2, 0.5, 0.9]) is None


def test_classification_report_includes_roc_for_binary_scores():
    report = classification_report([0, 0, 1, 1], [0, 1, 0, 1], y_score=[0.1, 0.4, 0.35, 0.8])
    assert report["roc_auc"] == pytest.approx(0.75)


def test_length_mismatch_raises():
    with pytest.raises(ShapeMismatchError) as exc:
        classification_report([1, 0, 1], [1, 0])
    assert exc.value.step == "classification_report"


def test_empty_input_raises():
    with pytest.raises(EmptyInputError):
        classification_report([], [])
    with pytest.raises(EmptyInputError):
        check_prediction_inputs(np.array([]), np.array([]))


# ------------------------------------------------------------------
# Regression
# ------------------------------------------------------------------

def test_mean_prediction_has_zero_reduction():
    y_true = [0.0, 3.0, 10.0, 30.0]
    train_mean = 6.25
    report = regression_report(y_true, [train_mean] * 4, train_mean=train_mean)
    assert report["relative_error_reduction"] == 0.0
    assert report["model_mse"] == report["baseline_mse"]


def test_perfect_prediction_has_full_reduction():
    y_true = [0.0, 3.0, 10.0, 30.0]
    report = regression_report(y_true, y_true, train_mean=5.0)
    assert report["model_mse"] == 0.0
    assert report["relative_error_reduction"] == 1.0


def test_reduction_formula():
    report = regression_report([0.0, 2.0], [1.0, 1.0], train_mean=0.0)
    # baseline mse = (0 + 4) / 2 = 2, model mse = 1
    assert report["baseline_mse"] == 2.0
    assert report["relative_error_reduction"] == pytest.approx(0.5)


def test_zero_baseline_mse():
    assert regression_report([2.0, 2.0], [2.0, 2.0], 2.0)["relative_error_reduction"] == 1.0
    assert regression_report([2.0, 2.0], [1.0, 2.0], 2.0)["relative_error_reduction"] == float("-inf")


def test_regression_length_mismatch():
    with pytest.raises(ShapeMismatchError):
        regression_report([1.0, 2.0], [1.0], train_mean=1.0)


# ------------------------------------------------------------------
# Importance ranking
# ------------------------------------------------------------------

def test_rank_importances_descending_with_name_ties():
    imp = pd.Series({"b": 0.3, "a": 0.3, "c": 0.4})
    ranked = rank_importances(imp)
    assert ranked["feature"].tolist() == ["c", "a", "b"]
    assert ranked["rank"].tolist() == [1, 2, 3]


def test_rank_importances_is_order_independent():
    names = ["x3", "x1", "x2", "x0"]
    values = [0.1, 0.1, 0.5, 0.3]
    forward = rank_importances(values, names)
    backward = rank_importances(values[::-1], names[::-1])
    pd.testing.assert_frame_equal(forward, backward)


def test_rank_importances_length_mismatch():
    with pytest.raises(ShapeMismatchError):
        rank_importances([0.1, 0.2], ["a"])


def test_rank_importances_empty():
    with pytest.raises(EmptyInputError):
        rank_importances([], [])


# ------------------------------------------------------------------
# evaluate_model
# ------------------------------------------------------------------

@pytest.fixture
def toy_xy():
    rng = np.random.default_rng(0)
    X = pd.DataFrame({"f1": rng.integers(0, 4, 80), "f2": rng.normal(size=80)})
    y = (X["f1"] >= 2).astype(int)
    return X, y


def test_evaluate_classifier_uses_scores(toy_xy):
    X, y = toy_xy
    model = DecisionTreeClassifier(random_state=0).fit(X, y)
    report = evaluate_model(model, X, y, task="classification")
    assert report["accuracy"] == 1.0
    assert report["roc_auc"] == 1.0


def test_evaluate_regressor(toy_xy):
    X, y = toy_xy
    model = DecisionTreeRegressor(random_state=0).fit(X, y.astype(float))
    report = evaluate_model(model, X, y.astype(float), task="regression",
                            train_mean=float(y.mean()))
    assert report["relative_error_reduction"] == pytest.approx(1.0)


def test_evaluate_regression_needs_train_mean(toy_xy):
    X, y = toy_xy
    model = DecisionTreeRegressor(random_state=0).fit(X, y)
    with pytest.raises(ConfigurationError):
        evaluate_model(model, X, y, task="regression")


def test_evaluate_empty_holdout(toy_xy):
    X, y = toy_xy
    model = DecisionTreeClassifier(random_state=0).fit(X, y)
    with pytest.raises(EmptyInputError):
        evaluate_model(model, X.iloc[:0], y.iloc[:0], task="classification")


def test_evaluate_unknown_task(toy_xy):
    X, y = toy_xy
    model = DecisionTreeClassifier(random_state=0).fit(X, y)
    with pytest.raises(ConfigurationError):
        evaluate_model(model, X, y, task="ranking")


# ------------------------------------------------------------------
# JSON summaries
# ------------------------------------------------------------------

def test_report_to_json_writes_null_for_missing_auc():
    report = classification_report([0, 1, 2, 2], [0, 1, 2, 1], y_score=[0.1] * 4)
    summary = report_to_json(report)
    assert summary["roc_auc"] is None
    assert summary["confusion_counts"]["2->1"] == 1
    text = json.dumps(summary, allow_nan=False)
    assert "NaN" not in text


def test_report_to_json_regression_infinity_is_null():
    report = regression_report([2.0, 2.0], [1.0, 2.0], 2.0)
    summary = report_to_json(report)
    assert summary["relative_error_reduction"] is None
    assert summary["model_mse"] == 0.5
    json.dumps(summary, allow_nan=False)
