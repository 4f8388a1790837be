# phi_redaction/engine/scoring.py

"""Linear scoring model: default weights, scoring, classification and categories."""

import logging
import time
from typing import Mapping, Optional

from phi_redaction.core.definitions import (
    DEFAULT_LEARNING_RATE,
    FEATURE_NAMES,
    PHI_THRESHOLD,
    WEIGHT_BOUND,
    PHICategory,
)
from phi_redaction.core.domain import FeatureVector, Model
from phi_redaction.core.loader import PatternLoader

logger = logging.getLogger(__name__)

# (feature, category) checked in priority order; shapes before context cues
_SHAPE_CATEGORIES = (
    ("looks_like_date", PHICategory.DATE),
    ("looks_like_phone", PHICategory.PHONE),
    ("looks_like_email", PHICategory.EMAIL),
    ("looks_like_ssn", PHICategory.SSN),
    ("looks_like_mrn", PHICategory.MRN),
    ("looks_like_zip", PHICategory.ZIP_CODE),
)


def create_default_model(learning_rate: float = DEFAULT_LEARNING_RATE) -> Model:
    """Builds the initial model from the default weights in patterns.yaml."""
    weights = PatternLoader.get_instance().get_default_weights()
    missing = [name for name in FEATURE_NAMES if name not in weights]
    if missing:
        logger.warning(f"No default weight for features {missing}; scoring them as 0")
    return Model(
        weights={name: clamp_weight(value) for name, value in weights.items()},
        learning_rate=learning_rate,
        version=1,
        last_trained=time.time(),
    )


def clamp_weight(value: float) -> float:
    return max(-WEIGHT_BOUND, min(WEIGHT_BOUND, value))


def score(features: FeatureVector, weights: Mapping[str, float]) -> float:
    """Weighted sum of feature values; features without a weight count as 0."""
    return sum(weights.get(name, 0.0) * value for name, value in features.items())


def is_phi(value: float) -> bool:
    return value > PHI_THRESHOLD


def predict(features: FeatureVector, weights: Mapping[str, float]) -> int:
    """Returns 1 if the features score as PHI, else 0."""
    return 1 if is_phi(score(features, weights)) else 0


def assign_category(features: FeatureVector) -> str:
    """Picks the PHI category of a positive detection.

    Shape-based categories win over relational ones; 'unknown' is the
    catch-all for tokens that score positive without a named cue.
    """
    for feature, category in _SHAPE_CATEGORIES:
        if features.get(feature):
            return category
    if features.has_title_before or features.near_patient_word:
        return PHICategory.NAME
    if features.looks_like_address:
        return PHICategory.ADDRESS
    return PHICategory.UNKNOWN


def weights_summary(model: Optional[Model]) -> Mapping[str, float]:
    """Returns the model weights in catalog order, for display and export."""
    if model is None:
        return {}
    ordered = {name: model.weights.get(name, 0.0) for name in FEATURE_NAMES}
    ordered.update({k: v for k, v in model.weights.items() if k not in ordered})
    return ordered
