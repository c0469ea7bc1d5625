"""
Configuration loader and survey code constants for the youth substance-use analysis.

Usage:
    from youthuse.config import cfg, set_global_seed, SURVEY
    set_global_seed()               # call once at start of every script
    print(SURVEY.RECENCY_NON_USE)   # (91, 93)
    print(cfg['substances']['marijuana']['recency_column'])
"""

import yaml
import numpy as np
from pathlib import Path
from dataclasses import dataclass

from youthuse.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------
_PACKAGE_DIR = Path(__file__).resolve().parent
_DEFAULT_CONFIG = _PACKAGE_DIR / "configs" / "default.yaml"


def load_config(path: Path = _DEFAULT_CONFIG) -> dict:
    """Load YAML config and return as dict."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


cfg = load_config()


# ---------------------------------------------------------------------------
# Survey code constants (immutable, used by target derivation and recoding)
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SurveyDesign:
    """Immutable codebook facts for the NSDUH youth extract."""
    NAME: str = "National Survey on Drug Use and Health, youth respondents"
    RESPONDENT_KEY: str = cfg["data"]["respondent_key"]
    MISSING_CODES: tuple = tuple(float(c) for c in cfg["survey"]["missing_codes"])
    RECENCY_NON_USE: tuple = tuple(float(c) for c in cfg["survey"]["recency_non_use_codes"])
    BUCKET_NO_USE: float = float(cfg["survey"]["bucket_no_use_code"])
    BUCKET_NONE: float = float(cfg["survey"]["bucket_none_code"])
    BUCKET_MAX: float = float(cfg["survey"]["bucket_max_code"])
    COUNT_MAX_VALID: float = float(cfg["survey"]["count_max_valid"])
    UNKNOWN_CODE: float = float(cfg["survey"]["unknown_code"])

    @property
    def RECENCY_MIN_SENTINEL(self) -> float:
        """Smallest non-use code; every recency code below it means use."""
        return min(self.RECENCY_NON_USE)


SURVEY = SurveyDesign()

TARGET_KINDS = ("binary", "categorical", "continuous")


# ---------------------------------------------------------------------------
# Global seed management
# ---------------------------------------------------------------------------
def set_global_seed(seed: int | None = None) -> int:
    """
    Set global random seed for reproducibility.
    Uses config seed if none provided.
    Returns the seed used.
    """
    if seed is None:
        seed = cfg["modeling"]["random_seed"]
    np.random.seed(seed)
    return seed


# ---------------------------------------------------------------------------
# Feature set / substance helpers
# ---------------------------------------------------------------------------
def get_feature_set(name: str) -> list[str]:
    """Return list of raw column names for a named feature set."""
    fs = cfg["feature_sets"]
    if name == "full":
        return fs["demographics"] + fs["youth_experience"] + fs["substance_use"]
    if name not in fs:
        raise ConfigurationError(
            f"Unknown feature set '{name}'. Choose from: {list(fs.keys())} or 'full'.",
            step="feature_set",
        )
    return list(fs[name])


def get_recode_columns() -> list[str]:
    """Columns whose codebook uses SURVEY.MISSING_CODES for unknown answers."""
    cols = []
    for name in cfg["survey"].get("recode_feature_sets", []):
        cols.extend(get_feature_set(name))
    return cols


def get_feature_labels() -> dict[str, str]:
    """Return raw_col -> readable_name mapping."""
    return cfg.get("feature_labels", {})


def get_substance(name: str) -> dict:
    """Return the column spec for a substance, or raise ConfigurationError."""
    substances = cfg["substances"]
    if name not in substances:
        raise ConfigurationError(
            f"Unknown substance '{name}'. Choose from: {sorted(substances)}.",
            step="derive_target",
        )
    return substances[name]


def list_substances() -> list[str]:
    return list(cfg["substances"].keys())


def get_model_params(name: str) -> dict:
    """Hyperparameters for a named model from config (empty if none)."""
    return dict(cfg["modeling"].get(name) or {})


# ---------------------------------------------------------------------------
# Output path helpers
# ---------------------------------------------------------------------------
def resolve_path(path, base_dir: Path | None = None) -> Path:
    """Resolve a config path; relative paths are taken from base_dir (default: cwd)."""
    path = Path(path)
    if path.is_absolute():
        return path
    return Path(base_dir if base_dir is not None else Path.cwd()) / path


def get_output_dir(kind: str = "reports", base_dir: Path | None = None) -> Path:
    """Return absolute path for an output directory, creating it if needed.

    Relative entries under `outputs` resolve against `base_dir`, or the
    current working directory when it is not given.
    """
    key_map = {
        "reports": "reports_dir",
        "tables": "tables_dir",
    }
    rel = cfg["outputs"].get(key_map.get(kind, kind), kind)
    out = resolve_path(rel, base_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out
