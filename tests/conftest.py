"""
Shared fixtures: a synthetic youth survey extract laid out like the NSDUH
codebook (past-month frequency with 91/93 sentinels, frequency buckets with
5 = no use, 94/97 unknown codes in questionnaire items).
"""

import numpy as np
import pandas as pd
import pytest

from youthuse.data_loading import YouthDataset


def _bucket(days: np.ndarray, used: np.ndarray) -> np.ndarray:
    buckets = np.select(
        [days <= 2, days <= 5, days <= 19],
        [1, 2, 3],
        default=4,
    )
    return np.where(used, buckets, 5)


def _use_columns(rng, n, risk):
    used = risk > 0.5
    days = rng.integers(1, 31, size=n)
    never_or_not_recent = rng.choice([91, 93], size=n)
    freq = np.where(used, days, never_or_not_recent)
    return used, freq, _bucket(days, used)


def make_youth_frame(n: int = 400, seed: int = 0) -> pd.DataFrame:
    rng = np.random.default_rng(seed)

    friends = rng.integers(1, 4, size=n)        # FRDMEVR2: 1 strongly .. 3 neither
    parents = rng.integers(1, 4, size=n)        # PRMJEVR2
    argue = rng.integers(1, 5, size=n)
    sex = rng.integers(1, 3, size=n)

    mj_risk = 0.9 * (friends - 2) + 0.5 * (parents - 2) + rng.normal(0, 0.7, size=n)
    alc_risk = 0.6 * (argue - 2.5) + rng.normal(0, 0.8, size=n)
    cig_risk = 0.5 * (friends - 2) + rng.normal(0, 0.9, size=n)

    mj_used, irmjfm, mrjmdays = _use_columns(rng, n, mj_risk)
    alc_used, iralcfm, alcmdays = _use_columns(rng, n, alc_risk)
    cig_used, ircigfm, cigmdays = _use_columns(rng, n, cig_risk)

    health = rng.integers(1, 5, size=n).astype(float)
    health[rng.random(n) < 0.08] = 94
    schfelt = rng.integers(1, 3, size=n).astype(float)
    schfelt[rng.random(n) < 0.05] = 97

    return pd.DataFrame({
        "QUESTID2": np.arange(10_000, 10_000 + n),
        "IRSEX": sex,
        "NEWRACE2": rng.integers(1, 8, size=n),
        "INCOME": rng.integers(1, 5, size=n),
        "HEALTH2": health,
        "SCHFELT": schfelt,
        "PARCHKHW": rng.integers(1, 5, size=n),
        "ARGUPAR": argue,
        "PRMJEVR2": parents,
        "FRDMEVR2": friends,
        "IMOTHER": rng.integers(1, 4, size=n),
        "IFATHER": rng.integers(1, 4, size=n),
        "IRALCAGE": np.where(alc_used, rng.integers(10, 18, size=n), 991),
        "IRALCFM": iralcfm,
        "ALCMDAYS": alcmdays,
        "IRMJFM": irmjfm,
        "MRJMDAYS": mrjmdays,
        "IRCIGFM": ircigfm,
        "CIGMDAYS": cigmdays,
    })


@pytest.fixture
def youth_frame() -> pd.DataFrame:
    return make_youth_frame()


@pytest.fixture
def youth_dataset(youth_frame) -> YouthDataset:
    return YouthDataset.from_frame(youth_frame, respondent_key="QUESTID2")


@pytest.fixture
def fast_model_params() -> dict:
    """Small ensembles so pipeline tests stay quick."""
    return {
        "bagging": {"n_estimators": 20},
        "random_forest": {"n_estimators": 20},
        "boosting": {"n_estimators": 30, "learning_rate": 0.1, "max_depth": 2},
        "pruned_tree": {"max_alphas": 8},
    }
