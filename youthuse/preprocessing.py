"""
Preprocessing module for the youth substance-use analysis.
Sentinel recoding, modeling-frame construction, seeded train/test split and
missing-data policies (complete-case, imputation, explicit unknown category).
"""

import pandas as pd
import numpy as np
from sklearn.model_selection import train_test_split, KFold, StratifiedKFold

from youthuse.config import cfg, SURVEY, get_recode_columns
from youthuse.data_loading import (
    YouthDataset,
    derive_target,
    get_predictor_columns,
)
from youthuse.errors import ConfigurationError, InsufficientDataError

MISSING_POLICIES = ("drop", "impute", "category")


# === 1. SENTINEL (UNKNOWN) CODE HANDLING ===

def recode_missing_codes(df: pd.DataFrame,
                         features: list[str],
                         codes: tuple | None = None) -> pd.DataFrame:
    """Replace don't know / refused / blank / skip codes with NaN in feature columns."""
    if codes is None:
        codes = SURVEY.MISSING_CODES
    df_out = df.copy()
    for col in features:
        if col in df_out.columns:
            df_out[col] = df_out[col].replace(list(codes), np.nan)
    return df_out


# === 2. MODELING FRAME ===

def build_modeling_frame(dataset: YouthDataset,
                         substance: str,
                         kind: str,
                         feature_set: str = "full") -> tuple[pd.DataFrame, list[str], str]:
    """
    Assemble predictors + derived target for one substance/target kind.

    Respondents whose target could not be derived are dropped; predictor
    sentinel codes are recoded to NaN. The returned frame is an independent copy.

    Returns:
        frame, predictor column names, target column name.
    """
    y = derive_target(dataset, substance, kind)
    predictors = get_predictor_columns(dataset, substance, feature_set)["columns"]
    if not predictors:
        raise ConfigurationError(
            f"No predictors available for {substance} with feature set '{feature_set}'",
            step="build_frame", n_records=len(dataset),
        )

    frame = dataset.frame(predictors)
    recode_cols = set(get_recode_columns())
    frame = recode_missing_codes(frame, [c for c in predictors if c in recode_cols])
    frame[y.name] = y

    n_start = len(frame)
    frame = frame[frame[y.name].notna()].copy()
    if kind != "continuous":
        frame[y.name] = frame[y.name].astype(int)

    print(f"Starting rows: {n_start:,}")
    print(f"After target filter: {len(frame):,}")
    if len(frame) == 0:
        raise InsufficientDataError(
            f"No respondents with a usable {y.name} target",
            step="build_frame", n_records=n_start,
        )
    return frame, predictors, y.name


# === 3. TRAIN/TEST SPLIT ===

def split_records(frame: pd.DataFrame,
                  train_fraction: float | None = None,
                  seed: int | None = None,
                  min_size: int = 1,
                  stratify_col: str | None = None) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Uniform random train/test partition without replacement.

    The same frame and seed always give the same partition; train and test
    are disjoint and together cover every row of `frame`.

    Args:
        frame: Records to partition (unique index).
        train_fraction: Share of rows for training (default from config, 0.75).
        seed: Random seed (default from config).
        min_size: Minimum rows each side must keep.
        stratify_col: Optional column to stratify on.

    Returns:
        train, test (independent copies).
    """
    if train_fraction is None:
        train_fraction = cfg["modeling"]["train_fraction"]
    if seed is None:
        seed = cfg["modeling"]["random_seed"]

    if not 0 < train_fraction < 1:
        raise ConfigurationError(
            f"train_fraction must be in (0, 1), got {train_fraction}",
            step="split", n_records=len(frame),
        )
    if len(frame) < 2:
        raise InsufficientDataError(
            "Need at least 2 records to split", step="split", n_records=len(frame),
        )

    stratify = frame[stratify_col] if stratify_col is not None else None
    train, test = train_test_split(
        frame,
        train_size=train_fraction,
        random_state=seed,
        shuffle=True,
        stratify=stratify,
    )

    for name, part in (("train", train), ("test", test)):
        if len(part) < max(min_size, 1):
            raise InsufficientDataError(
                f"{name} subset has {len(part)} records, need at least {max(min_size, 1)}",
                step="split", n_records=len(frame),
            )

    return train.copy(), test.copy()


# === 4. MISSING-DATA POLICIES ===

def drop_incomplete(subset: pd.DataFrame,
                    predictors: list[str],
                    min_size: int = 1) -> pd.DataFrame:
    """
    Complete-case subset: remove any record with a missing predictor.
    Idempotent. Apply to train and test independently.
    """
    complete = subset.dropna(subset=predictors).copy()
    if len(complete) < max(min_size, 1):
        raise InsufficientDataError(
            f"Complete-case subset has {len(complete)} records, "
            f"need at least {max(min_size, 1)}",
            step="drop_incomplete", n_records=len(subset),
        )
    return complete


def fit_imputation(train: pd.DataFrame,
                   predictors: list[str]) -> dict[str, float]:
    """
    Learn fill values on the training subset for every predictor: median for
    count-like columns (more than 10 distinct codes), mode for categorical codes.
    """
    fill_values = {}
    for col in predictors:
        vals = train[col].dropna()
        if len(vals) == 0:
            fill_values[col] = SURVEY.UNKNOWN_CODE
        elif vals.nunique() > 10:
            fill_values[col] = float(vals.median())
        else:
            fill_values[col] = float(vals.mode().iloc[0])
    return fill_values


def apply_imputation(subset: pd.DataFrame,
                     fill_values: dict[str, float],
                     indicator_cols: list[str]) -> pd.DataFrame:
    """Add {feature}_missing indicators for `indicator_cols` and fill with training-set values."""
    df_out = subset.copy()
    for col in indicator_cols:
        df_out[f"{col}_missing"] = df_out[col].isna().astype(int)
    for col, fill_val in fill_values.items():
        df_out[col] = df_out[col].fillna(fill_val)
    return df_out


def recode_as_unknown(subset: pd.DataFrame,
                      predictors: list[str]) -> pd.DataFrame:
    """Keep unknowns as their own level (SURVEY.UNKNOWN_CODE)."""
    df_out = subset.copy()
    df_out[predictors] = df_out[predictors].fillna(SURVEY.UNKNOWN_CODE)
    return df_out


def apply_missing_policy(train: pd.DataFrame,
                         test: pd.DataFrame,
                         predictors: list[str],
                         policy: str | None = None,
                         min_size: int = 1) -> tuple[pd.DataFrame, pd.DataFrame, list[str]]:
    """
    Apply a missing-data policy consistently to both sides of a split.

    Args:
        train, test: Output of split_records.
        predictors: Predictor columns.
        policy: "drop" = complete cases on each side independently.
                "impute" = indicators + mode/median learned on train only.
                "category" = NaN becomes an explicit unknown code.
                None = use default from config.
        min_size: Minimum rows each side must keep.

    Returns:
        train', test', predictor names (with indicators for "impute").
    """
    if policy is None:
        policy = cfg["modeling"]["missing_policy"]

    if policy == "drop":
        train_out = drop_incomplete(train, predictors, min_size=min_size)
        test_out = drop_incomplete(test, predictors, min_size=min_size)
        return train_out, test_out, list(predictors)

    if policy == "impute":
        fill_values = fit_imputation(train, predictors)
        # same indicator set on both sides, whichever side has the gap
        gappy = [col for col in predictors
                 if train[col].isna().any() or test[col].isna().any()]
        train_out = apply_imputation(train, fill_values, gappy)
        test_out = apply_imputation(test, fill_values, gappy)
        indicators = [f"{col}_missing" for col in gappy]
        return train_out, test_out, list(predictors) + indicators

    if policy == "category":
        return (recode_as_unknown(train, predictors),
                recode_as_unknown(test, predictors),
                list(predictors))

    raise ConfigurationError(
        f"Unknown missing policy '{policy}'. Use: {', '.join(MISSING_POLICIES)}.",
        step="missing_policy", n_records=len(train) + len(test),
    )


# === 5. MISSINGNESS ANALYSIS ===

def compute_missingness_rates(df: pd.DataFrame,
                              features: list[str]) -> pd.DataFrame:
    """
    Per-variable missingness, split into sentinel codes still present and NaN.

    Returns DataFrame with columns: variable, n_total, n_sentinel, n_nan,
    n_any_missing, pct_any_missing; sorted by pct_any_missing descending.
    """
    rows = []
    n_total = len(df)
    for col in features:
        if col not in df.columns:
            continue
        vals = df[col]
        n_sentinel = int(vals.isin(SURVEY.MISSING_CODES).sum())
        n_nan = int(vals.isna().sum())
        n_any = n_sentinel + n_nan
        rows.append({
            "variable": col,
            "n_total": n_total,
            "n_sentinel": n_sentinel,
            "n_nan": n_nan,
            "n_any_missing": n_any,
            "pct_any_missing": round(n_any / n_total * 100, 2) if n_total else 0.0,
        })

    columns = ["variable", "n_total", "n_sentinel", "n_nan", "n_any_missing", "pct_any_missing"]
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns).sort_values(
        "pct_any_missing", ascending=False, kind="mergesort"
    ).reset_index(drop=True)


# === 6. FEATURES / TARGET / CV ===

def split_features_target(subset: pd.DataFrame,
                          predictors: list[str],
                          target_col: str) -> tuple[pd.DataFrame, pd.Series]:
    """Return X (predictor copy) and y for one side of a split."""
    return subset[predictors].copy(), subset[target_col].copy()


def create_cv_folds(n_splits: int | None = None,
                    random_state: int | None = None,
                    stratified: bool = False):
    """Seeded (stratified) K-fold splitter."""
    if n_splits is None:
        n_splits = cfg["modeling"]["cv_folds"]
    if random_state is None:
        random_state = cfg["modeling"]["random_seed"]

    if stratified:
        return StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    return KFold(n_splits=n_splits, shuffle=True, random_state=random_state)
