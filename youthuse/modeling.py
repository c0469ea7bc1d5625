"""
Modeling module for the youth substance-use analysis.

Decision tree, cross-validated cost-complexity pruning, bagging, random forest
and gradient boosting (all from scikit-learn), native importances,
cross-validated scoring and model comparison utilities.
"""

import numpy as np
import pandas as pd
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor
from sklearn.ensemble import (
    RandomForestClassifier,
    RandomForestRegressor,
    GradientBoostingClassifier,
    GradientBoostingRegressor,
)
from sklearn.model_selection import GridSearchCV, cross_val_score
from sklearn.base import clone

from youthuse.config import cfg, get_model_params
from youthuse.errors import ConfigurationError, InsufficientDataError
from youthuse.preprocessing import create_cv_folds

MODEL_NAMES = ("decision_tree", "pruned_tree", "bagging", "random_forest", "boosting")

_TASK_BY_KIND = {
    "binary": "classification",
    "categorical": "classification",
    "continuous": "regression",
}


def task_for_kind(kind: str) -> str:
    """binary/categorical -> classification, continuous -> regression."""
    if kind not in _TASK_BY_KIND:
        raise ConfigurationError(
            f"Unknown target kind '{kind}'. Choose from: {list(_TASK_BY_KIND)}.",
            step="fit",
        )
    return _TASK_BY_KIND[kind]


def _check_task(task: str) -> None:
    if task not in ("classification", "regression"):
        raise ConfigurationError(
            f"Unknown task '{task}'. Use: classification, regression.", step="fit",
        )


# ===================================================================
# 1. SINGLE TREES
# ===================================================================

def fit_decision_tree(
    X_train, y_train,
    task: str = "classification",
    max_depth: int | None = None,
    min_samples_leaf: int = 5,
    ccp_alpha: float = 0.0,
    seed: int | None = None,
):
    """
    Fit an unpruned (or alpha-pruned) CART tree.

    Returns:
        Fitted DecisionTreeClassifier / DecisionTreeRegressor.
    """
    _check_task(task)
    if seed is None:
        seed = cfg["modeling"]["random_seed"]

    tree_cls = DecisionTreeClassifier if task == "classification" else DecisionTreeRegressor
    model = tree_cls(
        max_depth=max_depth,
        min_samples_leaf=min_samples_leaf,
        ccp_alpha=ccp_alpha,
        random_state=seed,
    )
    model.fit(X_train, y_train)
    return model


def prune_tree_cv(
    X_train, y_train,
    task: str = "classification",
    n_folds: int | None = None,
    max_alphas: int = 25,
    min_samples_leaf: int = 5,
    seed: int | None = None,
) -> tuple[object, pd.DataFrame]:
    """
    Choose the cost-complexity pruning level by K-fold cross-validation.

    Candidate alphas come from the full tree's pruning path, thinned to at most
    `max_alphas` evenly spaced values.

    Returns:
        best_model: Pruned tree refit on all training data.
        cv_table: DataFrame with ccp_alpha, mean_score, std_score, rank.
    """
    _check_task(task)
    if seed is None:
        seed = cfg["modeling"]["random_seed"]
    if n_folds is None:
        n_folds = cfg["modeling"]["cv_folds"]

    if len(y_train) < n_folds:
        raise InsufficientDataError(
            f"Need at least {n_folds} training records for {n_folds}-fold pruning",
            step="prune_tree_cv", n_records=len(y_train),
        )

    tree_cls = DecisionTreeClassifier if task == "classification" else DecisionTreeRegressor
    base = tree_cls(min_samples_leaf=min_samples_leaf, random_state=seed)

    path = base.cost_complexity_pruning_path(X_train, y_train)
    alphas = np.unique(np.clip(path.ccp_alphas, 0.0, None))
    if len(alphas) > max_alphas:
        idx = np.linspace(0, len(alphas) - 1, max_alphas).round().astype(int)
        alphas = np.unique(alphas[idx])

    scoring = "accuracy" if task == "classification" else "neg_mean_squared_error"
    search = GridSearchCV(
        base,
        param_grid={"ccp_alpha": list(alphas)},
        cv=create_cv_folds(n_splits=n_folds, random_state=seed),
        scoring=scoring,
        refit=True,
    )
    search.fit(X_train, y_train)

    results = search.cv_results_
    cv_table = pd.DataFrame({
        "ccp_alpha": np.asarray(results["param_ccp_alpha"], dtype=float),
        "mean_score": results["mean_test_score"],
        "std_score": results["std_test_score"],
        "rank": results["rank_test_score"],
    }).sort_values("ccp_alpha").reset_index(drop=True)

    best = search.best_estimator_
    print(f"  Pruned tree: ccp_alpha={search.best_params_['ccp_alpha']:.5f}  "
          f"leaves={best.get_n_leaves()}  CV {scoring}={search.best_score_:.4f}")
    return best, cv_table


# ===================================================================
# 2. ENSEMBLES
# ===================================================================

def fit_bagging(
    X_train, y_train,
    task: str = "classification",
    n_estimators: int = 500,
    seed: int | None = None,
):
    """
    Bagged trees: a random forest that considers every feature at each split,
    which keeps impurity-based feature importances available.
    """
    _check_task(task)
    if seed is None:
        seed = cfg["modeling"]["random_seed"]

    forest_cls = RandomForestClassifier if task == "classification" else RandomForestRegressor
    model = forest_cls(
        n_estimators=n_estimators,
        max_features=None,
        bootstrap=True,
        random_state=seed,
    )
    model.fit(X_train, y_train)
    return model


def fit_random_forest(
    X_train, y_train,
    task: str = "classification",
    n_estimators: int = 500,
    max_features=None,
    seed: int | None = None,
):
    """
    Random forest. Default features per split: sqrt(p) for classification,
    p/3 for regression.
    """
    _check_task(task)
    if seed is None:
        seed = cfg["modeling"]["random_seed"]
    if max_features is None:
        max_features = "sqrt" if task == "classification" else 1 / 3

    forest_cls = RandomForestClassifier if task == "classification" else RandomForestRegressor
    model = forest_cls(
        n_estimators=n_estimators,
        max_features=max_features,
        random_state=seed,
    )
    model.fit(X_train, y_train)
    return model


def fit_gradient_boosting(
    X_train, y_train,
    task: str = "classification",
    n_estimators: int = 500,
    learning_rate: float = 0.01,
    max_depth: int = 4,
    seed: int | None = None,
):
    """Fit gradient-boosted trees (shrinkage `learning_rate`, depth `max_depth`)."""
    _check_task(task)
    if seed is None:
        seed = cfg["modeling"]["random_seed"]

    gb_cls = GradientBoostingClassifier if task == "classification" else GradientBoostingRegressor
    model = gb_cls(
        n_estimators=n_estimators,
        learning_rate=learning_rate,
        max_depth=max_depth,
        random_state=seed,
    )
    model.fit(X_train, y_train)
    return model


# ===================================================================
# 3. DISPATCH + IMPORTANCES
# ===================================================================

def fit_model(name: str, X_train, y_train,
              task: str = "classification",
              seed: int | None = None,
              n_folds: int | None = None,
              **overrides):
    """
    Fit a named model with hyperparameters from config (overridable).

    Returns:
        Fitted estimator. For "pruned_tree" the CV table is stored on the
        estimator as `cv_table_`.
    """
    if name not in MODEL_NAMES:
        raise ConfigurationError(
            f"Unknown model '{name}'. Choose from: {list(MODEL_NAMES)}.",
            step="fit", n_records=len(y_train),
        )
    params = get_model_params(name)
    params.update(overrides)

    if name == "decision_tree":
        return fit_decision_tree(X_train, y_train, task=task, seed=seed, **params)
    if name == "pruned_tree":
        model, cv_table = prune_tree_cv(X_train, y_train, task=task, n_folds=n_folds,
                                        seed=seed, **params)
        model.cv_table_ = cv_table
        return model
    if name == "bagging":
        return fit_bagging(X_train, y_train, task=task, seed=seed, **params)
    if name == "random_forest":
        return fit_random_forest(X_train, y_train, task=task, seed=seed, **params)
    return fit_gradient_boosting(X_train, y_train, task=task, seed=seed, **params)


def get_feature_importances(model, feature_names: list[str]) -> pd.Series:
    """Native impurity-based importances as a Series indexed by feature."""
    importances = getattr(model, "feature_importances_", None)
    if importances is None:
        raise ConfigurationError(
            f"{type(model).__name__} exposes no native feature importances",
            step="importances",
        )
    return pd.Series(np.asarray(importances, dtype=float), index=list(feature_names),
                     name="importance")


# ===================================================================
# 4. CROSS-VALIDATED SCORING
# ===================================================================

def cv_evaluate(
    model_template,
    X, y,
    task: str = "classification",
    n_folds: int | None = None,
    model_name: str = "Model",
    seed: int | None = None,
) -> dict:
    """
    K-fold CV of an (unfitted or fitted) model template.
    Accuracy for classification, MSE for regression.

    Returns dict: model, metric, mean, std, n_folds.
    """
    _check_task(task)
    if seed is None:
        seed = cfg["modeling"]["random_seed"]
    if n_folds is None:
        n_folds = cfg["modeling"]["cv_folds"]

    scoring = "accuracy" if task == "classification" else "neg_mean_squared_error"
    scores = cross_val_score(
        clone(model_template), X, y,
        cv=create_cv_folds(n_splits=n_folds, random_state=seed),
        scoring=scoring,
    )
    if task == "regression":
        scores = -scores

    return {
        "model": model_name,
        "metric": "accuracy" if task == "classification" else "mse",
        "mean": float(np.mean(scores)),
        "std": float(np.std(scores)),
        "n_folds": n_folds,
    }


# ===================================================================
# 5. MODEL COMPARISON TABLE
# ===================================================================

def model_comparison_table(results: list[dict]) -> pd.DataFrame:
    """
    Build a comparison table from per-model evaluation dicts
    (each with "model" plus a classification or regression report).

    Returns tidy DataFrame with one row per model.
    """
    display_cols = [
        "model", "n_test", "accuracy", "roc_auc",
        "baseline_mse", "model_mse", "relative_error_reduction", "top_feature",
    ]
    rows = []
    for r in results:
        rows.append({k: r.get(k, None) for k in display_cols})

    df = pd.DataFrame(rows, columns=display_cols)
    df = df.dropna(axis=1, how="all")
    for c in df.columns:
        if df[c].dtype == float:
            df[c] = df[c].round(4)
    return df
