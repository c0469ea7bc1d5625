"""
Youth Substance-Use Tree Models
===============================
Modules:
    config          – Configuration loading + survey code constants
    errors          – Error taxonomy (configuration, data, evaluator contracts)
    data_loading    – Dataset handle, codebook, target derivation, predictors
    preprocessing   – Sentinel recoding, train/test split, missing-data policies
    modeling        – Decision tree, pruning, bagging, random forest, boosting
    evaluation      – Classification/regression reports, importance ranking
    pipeline        – Parametrized per-substance analysis runs
"""

from youthuse import config
from youthuse import errors
from youthuse import data_loading
from youthuse import preprocessing
from youthuse import modeling
from youthuse import evaluation
from youthuse import pipeline
