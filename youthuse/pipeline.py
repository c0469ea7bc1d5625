"""
Analysis pipeline for the youth substance-use models.

One parametrized run per (substance, target kind):
derive target -> build frame -> split -> leakage screen -> missing policy ->
fit each model -> evaluate on held-out set -> rank importances.
"""

from dataclasses import dataclass, field

import pandas as pd

from youthuse.config import cfg, TARGET_KINDS, get_substance, list_substances
from youthuse.data_loading import YouthDataset, check_leakage
from youthuse.errors import ConfigurationError
from youthuse.preprocessing import (
    MISSING_POLICIES,
    build_modeling_frame,
    split_records,
    apply_missing_policy,
    split_features_target,
)
from youthuse.modeling import (
    MODEL_NAMES,
    task_for_kind,
    fit_model,
    get_feature_importances,
    model_comparison_table,
)
from youthuse.evaluation import evaluate_model, rank_importances


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings for one substance / target-kind run."""
    substance: str
    target_kind: str
    models: tuple = MODEL_NAMES
    feature_set: str = "full"
    train_fraction: float = 0.75
    seed: int = 1
    missing_policy: str = "drop"
    leakage_threshold: float = 0.95
    cv_folds: int = 5
    stratify: bool = False
    model_params: dict = field(default_factory=dict, hash=False, compare=False)

    @classmethod
    def from_cfg(cls, substance: str, target_kind: str, **overrides) -> "AnalysisConfig":
        """Fill defaults from the YAML config's `modeling` section."""
        m = cfg["modeling"]
        values = {
            "substance": substance,
            "target_kind": target_kind,
            "models": tuple(m["models"]),
            "train_fraction": m["train_fraction"],
            "seed": m["random_seed"],
            "missing_policy": m["missing_policy"],
            "leakage_threshold": m["leakage_threshold"],
            "cv_folds": m["cv_folds"],
            "stratify": m.get("stratify", False),
        }
        values.update(overrides)
        if "models" in overrides:
            values["models"] = tuple(values["models"])
        return cls(**values)

    def validate(self) -> None:
        get_substance(self.substance)
        if self.target_kind not in TARGET_KINDS:
            raise ConfigurationError(
                f"Unknown target kind '{self.target_kind}'. Choose from: {list(TARGET_KINDS)}.",
                step="config",
            )
        unknown = [m for m in self.models if m not in MODEL_NAMES]
        if unknown:
            raise ConfigurationError(
                f"Unknown models {unknown}. Choose from: {list(MODEL_NAMES)}.", step="config",
            )
        if self.missing_policy not in MISSING_POLICIES:
            raise ConfigurationError(
                f"Unknown missing policy '{self.missing_policy}'. "
                f"Use: {', '.join(MISSING_POLICIES)}.",
                step="config",
            )

    @property
    def label(self) -> str:
        return f"{self.substance}/{self.target_kind}"


def run_analysis(dataset: YouthDataset, config: AnalysisConfig) -> dict:
    """
    Run every configured model for one substance and target kind.

    Returns:
        Dict with config, task, target column, sizes, predictors,
        leakage_excluded, per-model results (report, importances, model)
        and a comparison table.
    """
    config.validate()
    task = task_for_kind(config.target_kind)

    print("\n" + "=" * 65)
    print(f"ANALYSIS: {config.label} ({task}, policy={config.missing_policy})")
    print("=" * 65)

    frame, predictors, target_col = build_modeling_frame(
        dataset, config.substance, config.target_kind, config.feature_set,
    )

    train, test = split_records(
        frame,
        train_fraction=config.train_fraction,
        seed=config.seed,
        min_size=len(predictors),
        stratify_col=target_col if config.stratify else None,
    )

    # Near-duplicates of the target are screened on training data only
    leaks = check_leakage(train, target_col, threshold=config.leakage_threshold,
                          features=predictors)
    leakage_excluded = [col for col, _ in leaks]
    if leaks:
        print(f"[WARN] Excluding near-duplicate predictors: {leaks}")
        predictors = [p for p in predictors if p not in leakage_excluded]

    train, test, predictors = apply_missing_policy(
        train, test, predictors, policy=config.missing_policy, min_size=len(predictors),
    )
    print(f"Train: {len(train):,}  Test: {len(test):,}  Predictors: {len(predictors)}")

    X_train, y_train = split_features_target(train, predictors, target_col)
    X_test, y_test = split_features_target(test, predictors, target_col)
    train_mean = float(y_train.mean()) if task == "regression" else None

    model_results = {}
    comparison_rows = []
    for name in config.models:
        print(f"\n--- {name} ---")
        model = fit_model(
            name, X_train, y_train, task=task, seed=config.seed,
            n_folds=config.cv_folds, **config.model_params.get(name, {}),
        )
        report = evaluate_model(model, X_test, y_test, task, train_mean=train_mean)
        importances = rank_importances(get_feature_importances(model, predictors))

        model_results[name] = {
            "model": model,
            "report": report,
            "importances": importances,
        }

        row = {"model": name, "n_test": report["n"],
               "top_feature": importances["feature"].iloc[0]}
        if task == "classification":
            row["accuracy"] = report["accuracy"]
            row["roc_auc"] = report["roc_auc"]
            print(f"  Accuracy: {report['accuracy']:.4f}")
            if report["roc"] is not None:
                print(f"  ROC-AUC:  {report['roc_auc']:.4f}")
        else:
            row["baseline_mse"] = report["baseline_mse"]
            row["model_mse"] = report["model_mse"]
            row["relative_error_reduction"] = report["relative_error_reduction"]
            print(f"  MSE: {report['model_mse']:.4f} (baseline {report['baseline_mse']:.4f}, "
                  f"reduction {report['relative_error_reduction']:.3f})")
        print(f"  Top predictors: {', '.join(importances['feature'].head(5))}")
        comparison_rows.append(row)

    return {
        "config": config,
        "task": task,
        "target_col": target_col,
        "n_train": len(train),
        "n_test": len(test),
        "predictors": predictors,
        "leakage_excluded": leakage_excluded,
        "models": model_results,
        "comparison": model_comparison_table(comparison_rows),
    }


def run_all_analyses(dataset: YouthDataset,
                     substances: list[str] | None = None,
                     kinds: list[str] | None = None,
                     **overrides) -> list[dict]:
    """Run the pipeline for every substance x target kind combination."""
    if substances is None:
        substances = list_substances()
    if kinds is None:
        kinds = list(cfg["modeling"].get("target_kinds", TARGET_KINDS))

    results = []
    for substance in substances:
        for kind in kinds:
            config = AnalysisConfig.from_cfg(substance, kind, **overrides)
            results.append(run_analysis(dataset, config))
    return results


def combined_comparison(results: list[dict]) -> pd.DataFrame:
    """Stack per-run comparison tables with substance / target kind columns."""
    frames = []
    for res in results:
        table = res["comparison"].copy()
        table.insert(0, "target_kind", res["config"].target_kind)
        table.insert(0, "substance", res["config"].substance)
        frames.append(table)
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def combined_importances(results: list[dict]) -> pd.DataFrame:
    """Long table of ranked importances for every run and model."""
    frames = []
    for res in results:
        for name, model_res in res["models"].items():
            table = model_res["importances"].copy()
            table.insert(0, "model", name)
            table.insert(0, "target_kind", res["config"].target_kind)
            table.insert(0, "substance", res["config"].substance)
            frames.append(table)
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)
