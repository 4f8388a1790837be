"""Tests for the linear scoring model."""

import pytest

from phi_redaction.core.definitions import FEATURE_NAMES, PHI_THRESHOLD, PHICategory
from phi_redaction.core.domain import FeatureVector, Model
from phi_redaction.engine.features import extract_features
from phi_redaction.engine.scoring import (
    assign_category,
    clamp_weight,
    create_default_model,
    is_phi,
    predict,
    score,
    weights_summary,
)


class TestDefaultModel:
    """Tests for the initial model."""

    def test_every_feature_has_a_weight(self, default_model):
        assert set(default_model.weights) == set(FEATURE_NAMES)

    def test_selected_default_weights(self, default_model):
        assert default_model.weights["looks_like_date"] == 5.0
        assert default_model.weights["near_patient_word"] == 3.0
        assert default_model.weights["near_geographic_word"] == -2.5
        assert default_model.weights["common_word"] == -2.0

    def test_initial_state(self, default_model):
        assert default_model.version == 1
        assert default_model.learning_rate == 0.15
        assert default_model.pretrained is False

    def test_round_trips_through_dict(self, default_model):
        assert Model.from_dict(default_model.to_dict()) == default_model


class TestScore:
    """Tests for scoring and classification."""

    def test_score_is_weighted_sum(self):
        features = FeatureVector(looks_like_date=1, has_numbers=1)
        assert score(features, {"looks_like_date": 5.0, "has_numbers": 0.8}) == pytest.approx(5.8)

    def test_missing_weight_counts_as_zero(self):
        assert score(FeatureVector(in_quotes=1), {}) == 0

    def test_rescoring_is_idempotent(self, default_model):
        features = extract_features("Johnson", "Patient Mr. ", " arrived.")
        assert score(features, default_model.weights) == score(features, default_model.weights)

    def test_threshold_is_strict(self):
        assert not is_phi(PHI_THRESHOLD)
        assert is_phi(PHI_THRESHOLD + 0.01)
        assert predict(FeatureVector(near_patient_word=1), {"near_patient_word": 3.0}) == 0

    @pytest.mark.parametrize("value,expected", [(12.5, 10.0), (-11, -10.0), (3.2, 3.2)])
    def test_clamp(self, value, expected):
        assert clamp_weight(value) == expected

    def test_default_model_clamps_weights(self):
        model = create_default_model(learning_rate=0.5)
        assert all(-10 <= w <= 10 for w in model.weights.values())
        assert model.learning_rate == 0.5


class TestAssignCategory:
    """Tests for category priority."""

    def test_shape_wins_over_name_cue(self):
        features = FeatureVector(looks_like_date=1, has_title_before=1)
        assert assign_category(features) == PHICategory.DATE

    def test_date_before_phone(self):
        assert assign_category(FeatureVector(looks_like_date=1, looks_like_phone=1)) == "date"

    def test_name_from_title_or_patient(self):
        assert assign_category(FeatureVector(has_title_before=1)) == PHICategory.NAME
        assert assign_category(FeatureVector(near_patient_word=1)) == PHICategory.NAME

    def test_address(self):
        assert assign_category(FeatureVector(looks_like_address=1)) == PHICategory.ADDRESS

    def test_unknown_fallback(self):
        assert assign_category(FeatureVector(near_relationship_word=1)) == PHICategory.UNKNOWN


def test_weights_summary_in_catalog_order(default_model):
    summary = weights_summary(default_model)
    assert list(summary) == list(FEATURE_NAMES)
    assert weights_summary(None) == {}
