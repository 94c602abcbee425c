"""
Insight engine configuration.

All thresholds and weights live in one frozen InsightConfig. Values come from, in order:
the built-in defaults, the YAML file (explicit path, $INSIGHTS_CONFIG, or config/insights.yaml),
and finally an optional named preset from the file's `presets:` section.
"""
import logging
import math
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Tuple

import yaml

from insights.errors import ConfigError

logger = logging.getLogger(__name__)

# filename used for the YAML configuration
CONFIG_FILENAME = 'insights.yaml'
CONFIG_ENV_VAR = 'INSIGHTS_CONFIG'

DEFAULT_SCORE_WEIGHTS = {
    'activity': 0.3,
    'staleness': 0.2,
    'responsiveness': 0.2,
    'merge_rate': 0.3,
}


@dataclass(frozen=True)
class InsightConfig:
    # anomaly detection
    min_anomaly_window: int = 7
    anomaly_z_threshold: float = 2.0
    anomaly_high_z: float = 3.0
    # trend classification
    trend_slope_threshold: float = 0.1
    volatility_ratio_threshold: float = 0.5
    # composite health scoring
    activity_weight: float = 2.0
    pull_request_activity_units: float = 2.5
    commit_activity_units: float = 1.0
    staleness_penalty: float = 10.0
    stale_after_days: int = 14
    neutral_score: float = 50.0
    score_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SCORE_WEIGHTS))
    # narrative rule thresholds
    low_merge_rate: float = 70.0
    large_pr_size: float = 500.0
    low_reviews_per_pr: float = 1.5
    min_collaborators: int = 3
    low_staleness_score: float = 70.0
    low_responsiveness_score: float = 50.0
    low_health_score: float = 50.0
    high_review_concentration: float = 0.5
    low_reciprocity: float = 0.3
    # metrics analysed when the caller does not name any
    trend_metrics: Tuple[str, ...] = ('opened', 'reviews_given', 'commits', 'productivity')
    anomaly_metrics: Tuple[str, ...] = ('opened', 'reviews_given', 'commits')

    def __post_init__(self):
        missing = set(DEFAULT_SCORE_WEIGHTS) - set(self.score_weights)
        if missing:
            raise ConfigError(f"score_weights missing: {', '.join(sorted(missing))}")
        total = sum(float(w) for w in self.score_weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ConfigError(f"score_weights must sum to 1.0 (got {total:.4f})")
        if self.min_anomaly_window < 2:
            raise ConfigError('min_anomaly_window must be at least 2')
        if self.anomaly_high_z < self.anomaly_z_threshold:
            raise ConfigError('anomaly_high_z must not be below anomaly_z_threshold')

    def with_overrides(self, overrides: Dict[str, Any]) -> 'InsightConfig':
        """Return a copy with known keys replaced; unknown keys are ignored with a warning."""
        return replace(self, **_coerce_overrides(overrides))


_FIELD_TYPES = {f.name: f for f in fields(InsightConfig)}


def _coerce_overrides(overrides: Dict[str, Any]) -> Dict[str, Any]:
    coerced: Dict[str, Any] = {}
    for key, value in (overrides or {}).items():
        if key == 'presets':
            continue
        if key not in _FIELD_TYPES:
            logger.warning('Ignoring unknown config key: %s', key)
            continue
        try:
            if key == 'score_weights':
                merged = dict(DEFAULT_SCORE_WEIGHTS)
                merged.update({k: float(v) for k, v in (value or {}).items()})
                coerced[key] = merged
            elif key in ('trend_metrics', 'anomaly_metrics'):
                coerced[key] = tuple(str(v) for v in value)
            elif key in ('min_anomaly_window', 'stale_after_days', 'min_collaborators'):
                coerced[key] = int(value)
            else:
                coerced[key] = float(value)
        except (TypeError, ValueError) as ex:
            raise ConfigError(f"Invalid value for {key}: {value!r} ({ex})") from ex
    return coerced


def default_config_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), 'config', CONFIG_FILENAME)


def _resolve_path(path: Optional[str]) -> str:
    return path or os.getenv(CONFIG_ENV_VAR) or default_config_path()


def _read_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            doc = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as ex:
        raise ConfigError(f"Failed to load config from {path}: {ex}") from ex
    if not isinstance(doc, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return doc


def load_config(path: Optional[str] = None, preset: Optional[str] = None) -> InsightConfig:
    """
    Load the configuration from YAML if available, otherwise return defaults.
    If preset is given it is merged over the base values; an unknown preset raises ConfigError.
    """
    resolved = _resolve_path(path)
    if not os.path.exists(resolved):
        if path or preset:
            raise ConfigError(f"Config file not found at: {resolved}")
        return InsightConfig()
    doc = _read_yaml(resolved)
    config = InsightConfig().with_overrides(doc)
    if preset:
        presets = doc.get('presets') or {}
        if preset not in presets:
            raise ConfigError(f"Preset '{preset}' not found in {resolved}")
        config = config.with_overrides(presets.get(preset) or {})
    return config


def load_preset(preset_name: str, path: Optional[str] = None) -> InsightConfig:
    """Load the base configuration with the named preset merged over it."""
    return load_config(path, preset=preset_name)


def list_presets(path: Optional[str] = None) -> List[str]:
    """Return the preset names defined in the config file (or an empty list)."""
    resolved = _resolve_path(path)
    if not os.path.exists(resolved):
        return []
    presets = _read_yaml(resolved).get('presets') or {}
    return sorted(presets.keys())
