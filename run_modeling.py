"""
Tree-model pipeline for youth substance use
============================================
Runs decision tree, pruned tree, bagging, random forest and boosting for every
configured substance x target kind (binary / categorical / continuous) and
writes comparison and importance tables.

Usage:
    python run_modeling.py
"""

import json

from youthuse.config import cfg, set_global_seed, get_output_dir, get_feature_set
from youthuse.data_loading import load_youth_data, validate_dataset, get_variable_info
from youthuse.evaluation import report_to_json
from youthuse.preprocessing import compute_missingness_rates
from youthuse.pipeline import run_all_analyses, combined_comparison, combined_importances

set_global_seed()
print("=" * 65)
print("Youth substance use -- tree-based models")
print("=" * 65)

# ---- 1. Load and validate data -------------------------------------------
print("\n--- Loading data ---")
dataset = load_youth_data()
validate_dataset(dataset)

tables_dir = get_output_dir("tables")
reports_dir = get_output_dir("reports")

get_variable_info(dataset).to_csv(tables_dir / "codebook_summary.csv", index=False)
features = [f for f in get_feature_set("full") if f in dataset.columns]
missingness = compute_missingness_rates(dataset.frame(features), features)
missingness.to_csv(tables_dir / "missingness_rates.csv", index=False)
print(f"  Variables with any missing code: {(missingness['n_any_missing'] > 0).sum()}")

# ---- 2. Run every substance x target kind --------------------------------
results = run_all_analyses(dataset)

# ---- 3. Tables --------------------------------------------------------------
comparison_df = combined_comparison(results)
comparison_df.to_csv(tables_dir / "model_comparison.csv", index=False)

importance_df = combined_importances(results)
importance_df.to_csv(tables_dir / "feature_importances.csv", index=False)

for res in results:
    pruned = res["models"].get("pruned_tree")
    if pruned is not None:
        name = f"pruning_cv_{res['config'].substance}_{res['config'].target_kind}.csv"
        pruned["model"].cv_table_.to_csv(tables_dir / name, index=False)

# ---- 4. Metrics JSON ----------------------------------------------------------
print("\n--- Saving model metrics JSON ---")
metrics_json = {}
for res in results:
    run_key = res["config"].label
    metrics_json[run_key] = {"n_train": res["n_train"], "n_test": res["n_test"],
                             "leakage_excluded": res["leakage_excluded"]}
    for name, model_res in res["models"].items():
        metrics_json[run_key][name] = report_to_json(model_res["report"])

json_path = reports_dir / "model_metrics.json"
with open(json_path, "w") as f:
    json.dump(metrics_json, f, indent=2, allow_nan=False)
print(f"  -> {json_path}")

# =====================================================================
# SUMMARY
# =====================================================================
print("\n" + "=" * 65)
print("MODELING -- COMPLETE")
print("=" * 65)
print(f"  Seed: {cfg['modeling']['random_seed']}  Missing policy: {cfg['modeling']['missing_policy']}")
print(f"  Tables: {tables_dir}")
print(f"  Report: {json_path}")

print("\n--- TOP PREDICTOR PER RUN (random forest) ---")
for res in results:
    rf = res["models"].get("random_forest")
    if rf is not None:
        top = rf["importances"].iloc[0]
        print(f"  {res['config'].label:<25s} {top['feature']:<12s} ({top['importance']:.4f})")
print()
