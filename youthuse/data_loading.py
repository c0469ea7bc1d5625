"""
Data loading module for the youth substance-use analysis.
Dataset loading into an immutable handle, codebook, validation, target derivation
and leakage-free predictor selection.
"""

import pandas as pd
import numpy as np
import pyreadstat
from pathlib import Path
from dataclasses import dataclass

from youthuse.config import (
    cfg, SURVEY, TARGET_KINDS, get_feature_set, get_feature_labels, get_substance,
    resolve_path,
)
from youthuse.errors import ConfigurationError, InsufficientDataError


# === 1. DATASET HANDLE ===

@dataclass(frozen=True, eq=False)
class YouthDataset:
    """
    Read-only handle on the loaded survey records.

    The wrapped frame is private to the handle; every accessor returns an
    independent copy so successive target derivations cannot interfere.
    """
    _data: pd.DataFrame
    source: str = "<memory>"

    @classmethod
    def from_frame(cls, df: pd.DataFrame,
                   respondent_key: str | None = None,
                   source: str = "<memory>") -> "YouthDataset":
        """Copy `df`, index it by respondent key (if present) and wrap it."""
        if respondent_key is None:
            respondent_key = SURVEY.RESPONDENT_KEY

        data = df.copy()
        if len(data) == 0:
            raise InsufficientDataError("Dataset has no records", step="load", n_records=0)

        if respondent_key in data.columns:
            if data[respondent_key].duplicated().any():
                n_dup = int(data[respondent_key].duplicated().sum())
                raise ConfigurationError(
                    f"Respondent key '{respondent_key}' has {n_dup} duplicate values",
                    step="load", n_records=len(data),
                )
            data = data.set_index(respondent_key)
        elif not data.index.is_unique:
            data = data.reset_index(drop=True)

        return cls(_data=data, source=source)

    def frame(self, columns: list[str] | None = None) -> pd.DataFrame:
        """Return a copy of the records, optionally restricted to `columns`."""
        if columns is None:
            return self._data.copy()
        missing = [c for c in columns if c not in self._data.columns]
        if missing:
            raise ConfigurationError(
                f"Columns not in dataset: {missing}", step="frame", n_records=len(self),
            )
        return self._data[list(columns)].copy()

    def column(self, name: str) -> pd.Series:
        return self.frame([name])[name]

    @property
    def columns(self) -> list[str]:
        return list(self._data.columns)

    @property
    def index(self) -> pd.Index:
        return self._data.index.copy()

    def __len__(self) -> int:
        return len(self._data)


# === 2. LOAD DATA ===

_READERS = {
    ".sav": pyreadstat.read_sav,
    ".zsav": pyreadstat.read_sav,
    ".dta": pyreadstat.read_dta,
    ".sas7bdat": pyreadstat.read_sas7bdat,
}


def load_youth_data(data_path: str | Path | None = None,
                    respondent_key: str | None = None) -> YouthDataset:
    """
    Load the youth survey extract keeping raw numeric codes.

    Args:
        data_path: CSV, SPSS (.sav), Stata (.dta) or SAS (.sas7bdat) file
                   (default: data.path from config, relative to the working directory).
        respondent_key: Column identifying respondents (default from config).

    Returns:
        YouthDataset handle indexed by respondent.
    """
    if data_path is None:
        data_path = resolve_path(cfg["data"]["path"])

    data_path = Path(data_path)
    suffix = data_path.suffix.lower()

    if suffix == ".csv":
        df = pd.read_csv(data_path)
    elif suffix in _READERS:
        # apply_value_formats=False keeps raw numeric codes instead of labels
        df, _meta = _READERS[suffix](str(data_path), apply_value_formats=False)
    else:
        raise ConfigurationError(
            f"Unsupported data file type '{suffix}'. "
            f"Use .csv or one of {sorted(_READERS)}.",
            step="load",
        )

    print(f"Loaded {len(df):,} respondents, {len(df.columns)} variables from {data_path.name}")
    return YouthDataset.from_frame(df, respondent_key=respondent_key, source=str(data_path))


# === 3. CODEBOOK / VARIABLE INFO ===

def get_variable_info(dataset: YouthDataset) -> pd.DataFrame:
    """Create a per-variable summary: valid counts, range, and sentinel counts."""
    df = dataset.frame()
    labels = get_feature_labels()
    rows = []
    for var in df.columns:
        vals = df[var]
        numeric = pd.api.types.is_numeric_dtype(vals)
        rows.append({
            "variable": var,
            "label": labels.get(var, ""),
            "n_valid": int(vals.notna().sum()),
            "n_unique": int(vals.nunique()),
            "min": vals.min() if numeric else None,
            "max": vals.max() if numeric else None,
            "n_missing_codes": int(vals.isin(SURVEY.MISSING_CODES).sum()) if numeric else 0,
        })
    return pd.DataFrame(rows)


# === 4. DATASET VALIDATION ===

def validate_dataset(dataset: YouthDataset,
                     substances: list[str] | None = None) -> dict:
    """
    Check that every column needed to derive the requested substances' targets
    is present. Raises ConfigurationError on failure; returns summary dict.
    """
    if substances is None:
        substances = list(cfg["substances"].keys())

    results = {"n_rows": len(dataset), "source": dataset.source}
    missing = {}
    for name in substances:
        spec = get_substance(name)
        needed = {spec["recency_column"], spec["bucket_column"], spec["count_column"]}
        absent = sorted(c for c in needed if c not in dataset.columns)
        if absent:
            missing[name] = absent

    if missing:
        raise ConfigurationError(
            f"Target columns missing from dataset: {missing}",
            step="validate", n_records=len(dataset),
        )

    features = get_feature_set("full")
    results["n_features_available"] = sum(f in dataset.columns for f in features)
    results["n_features_configured"] = len(features)

    print(f"[OK] Dataset validated for substances: {', '.join(substances)}")
    return results


# === 5. TARGET VARIABLE CREATION ===

def derive_binary_target(raw: pd.Series) -> pd.Series:
    """
    Past-month use: 1 if the recency code is below the first non-use sentinel,
    0 for "never used" (91) and "not in past 30 days" (93). Other codes -> NaN.
    """
    raw = raw.astype(float)
    y = pd.Series(np.nan, index=raw.index)
    y[raw < SURVEY.RECENCY_MIN_SENTINEL] = 1.0
    y[raw.isin(SURVEY.RECENCY_NON_USE)] = 0.0
    return y


def derive_categorical_target(raw: pd.Series) -> pd.Series:
    """
    Frequency bucket: the "no past-month use" code (5) joins the "none"
    bucket (0); buckets 0-4 pass through. Other codes -> NaN.
    """
    raw = raw.astype(float)
    y = raw.where(raw.between(SURVEY.BUCKET_NONE, SURVEY.BUCKET_MAX))
    y[raw == SURVEY.BUCKET_NO_USE] = SURVEY.BUCKET_NONE
    return y


def derive_continuous_target(raw: pd.Series) -> pd.Series:
    """
    Days used in the reference period: counts above 90 are "did not use"
    sentinels and become 0; 0-90 pass through; negatives -> NaN.
    """
    raw = raw.astype(float)
    y = raw.where(raw.between(0, SURVEY.COUNT_MAX_VALID))
    y[raw > SURVEY.COUNT_MAX_VALID] = 0.0
    return y


_DERIVERS = {
    "binary": ("recency_column", derive_binary_target),
    "categorical": ("bucket_column", derive_categorical_target),
    "continuous": ("count_column", derive_continuous_target),
}


def target_column_name(substance: str, kind: str) -> str:
    return f"y_{substance}_{kind}"


def derive_target(dataset: YouthDataset, substance: str, kind: str) -> pd.Series:
    """
    Derive a supervised-learning target for one substance.

    Args:
        dataset: Loaded survey records.
        substance: Substance name from config (e.g. "marijuana").
        kind: "binary", "categorical" or "continuous".

    Returns:
        Series named y_<substance>_<kind>; NaN where the raw code is not usable.
    """
    spec = get_substance(substance)
    if kind not in _DERIVERS:
        raise ConfigurationError(
            f"Unknown target kind '{kind}'. Choose from: {list(TARGET_KINDS)}.",
            step="derive_target", n_records=len(dataset),
        )

    column_key, deriver = _DERIVERS[kind]
    raw_col = spec[column_key]
    if raw_col not in dataset.columns:
        raise ConfigurationError(
            f"Column '{raw_col}' for {substance} {kind} target not in dataset",
            step="derive_target", n_records=len(dataset),
        )

    y = deriver(dataset.column(raw_col))
    y.name = target_column_name(substance, kind)

    n_miss = int(y.isna().sum())
    if kind == "continuous":
        valid = y.dropna()
        print(f"Target '{raw_col}' -> {y.name}:  mean={valid.mean():.2f}  "
              f"zeros={int((valid == 0).sum()):,}  NaN={n_miss:,}")
    else:
        counts = y.value_counts().sort_index()
        summary = "  ".join(f"{int(k)}={v:,}" for k, v in counts.items())
        print(f"Target '{raw_col}' -> {y.name}:  {summary}  NaN={n_miss:,}")
    return y


# === 6. FEATURE SET HELPERS ===

def get_excluded_columns(substance: str) -> list[str]:
    """Columns that encode the substance's own use and must not be predictors."""
    spec = get_substance(substance)
    excluded = list(spec.get("related_columns", []))
    for key in ("recency_column", "bucket_column", "count_column"):
        if spec[key] not in excluded:
            excluded.append(spec[key])
    return excluded


def get_predictor_columns(dataset: YouthDataset,
                          substance: str,
                          feature_set: str = "full") -> dict:
    """
    Get leakage-free predictor columns for a substance.

    Args:
        dataset: Loaded survey records.
        substance: Substance whose use is being predicted.
        feature_set: "demographics", "youth_experience", "substance_use" or "full".

    Returns:
        Dict with columns, labels, and exclude_vars (leakage prevention).
    """
    exclude_vars = get_excluded_columns(substance)
    configured = [c for c in get_feature_set(feature_set) if c not in exclude_vars]
    columns = [c for c in configured if c in dataset.columns]

    if len(columns) < len(configured):
        absent = [c for c in configured if c not in dataset.columns]
        print(f"[WARN] {len(absent)} features not in data: {absent}")

    all_labels = get_feature_labels()
    return {
        "columns": columns,
        "labels": {c: all_labels.get(c, c) for c in columns},
        "exclude_vars": exclude_vars,
    }


# === 7. LEAKAGE CHECK ===

def check_leakage(df: pd.DataFrame,
                  target_col: str,
                  threshold: float | None = None,
                  features: list[str] | None = None,
                  min_valid: int = 30) -> list[tuple[str, float]]:
    """Flag numeric predictors with |correlation| >= threshold with the target."""
    if threshold is None:
        threshold = cfg["modeling"]["leakage_threshold"]
    if features is None:
        features = [c for c in df.columns if c != target_col]

    leakage_vars = []
    target = df[target_col].astype(float)

    for col in features:
        if col == target_col or not pd.api.types.is_numeric_dtype(df[col]):
            continue
        valid = target.notna() & df[col].notna()
        if valid.sum() < min_valid:
            continue
        x = df.loc[valid, col].astype(float)
        if x.nunique() < 2 or target[valid].nunique() < 2:
            continue
        corr = target[valid].corr(x)
        if abs(corr) >= threshold:
            leakage_vars.append((col, round(float(corr), 4)))

    return leakage_vars
