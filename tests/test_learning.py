"""Tests for supervised retraining and reward-shaped pretraining."""

import random

import pytest

from phi_redaction.core.definitions import FEATURE_NAMES, Label
from phi_redaction.core.domain import FeatureVector, Model, TrainingExample
from phi_redaction.engine.features import extract_features
from phi_redaction.engine.learning import pretrain, retrain


def make_example(features, label, confidence=1.0, source="feedback"):
    return TrainingExample.create(
        word="token",
        before_context="",
        after_context="",
        features=features,
        label=label,
        confidence=confidence,
        source=source,
    )


def zero_model(learning_rate=0.15, **weights):
    base = {name: 0.0 for name in FEATURE_NAMES}
    base.update(weights)
    return Model(weights=base, learning_rate=learning_rate, last_trained=0.0)


@pytest.fixture
def mixed_examples():
    """Examples the default model partly misclassifies."""
    return [
        make_example(extract_features("Johnson", "Patient Mr. ", " arrived."), Label.PHI),
        make_example(extract_features("Denver", "Traveling from ", " to the clinic."), Label.NOT_PHI),
        make_example(extract_features("Mr", "Patient ", ". Johnson arrived."), Label.NOT_PHI),
        make_example(extract_features("Smith", "her son ", " visited"), Label.PHI, confidence=0.8),
        make_example(extract_features("03/15/2024", "Visit on ", " for checkup."), Label.PHI),
    ]


class TestRetrain:
    """Tests for supervised batch retraining."""

    def test_none_model_is_noop(self, mixed_examples):
        assert retrain(None, mixed_examples) is None

    def test_empty_store_returns_same_model(self, default_model):
        assert retrain(default_model, []) is default_model

    def test_version_and_timestamp(self, default_model, mixed_examples, rng):
        updated = retrain(default_model, mixed_examples, rng=rng)
        assert updated.version == default_model.version + 1
        assert updated.last_trained >= default_model.last_trained

    def test_input_model_untouched(self, default_model, mixed_examples, rng):
        before = dict(default_model.weights)
        retrain(default_model, mixed_examples, rng=rng)
        assert default_model.weights == before

    def test_single_example_store(self, default_model, rng):
        example = make_example(FeatureVector(looks_like_date=1, has_numbers=1), Label.PHI)
        updated = retrain(default_model, [example], rng=rng)
        assert updated.version == 2

    def test_misclassified_positive_raises_weights(self, rng):
        model = zero_model(learning_rate=1.0)
        example = make_example(FeatureVector(near_relationship_word=1), Label.PHI)
        updated = retrain(model, [example], rng=rng)
        # 0 -> 1 -> 2 -> 3 over three epochs; never exceeds the threshold
        assert updated.weights["near_relationship_word"] == pytest.approx(3.0)

    def test_weights_clamped_high(self, rng):
        model = zero_model(learning_rate=100.0)
        example = make_example(FeatureVector(looks_like_date=1), Label.PHI)
        assert retrain(model, [example], rng=rng).weights["looks_like_date"] == 10.0

    def test_weights_clamped_low(self, rng):
        model = zero_model(learning_rate=100.0, looks_like_date=5.0)
        example = make_example(FeatureVector(looks_like_date=1), Label.NOT_PHI)
        assert retrain(model, [example], rng=rng).weights["looks_like_date"] == -10.0

    def test_seeded_runs_are_reproducible(self, default_model, mixed_examples):
        a = retrain(default_model, mixed_examples, rng=random.Random(99))
        b = retrain(default_model, mixed_examples, rng=random.Random(99))
        assert a.weights == b.weights


class TestPretrain:
    """Tests for reward-shaped pretraining."""

    def test_none_model_is_noop(self, mixed_examples):
        assert pretrain(None, mixed_examples) is None

    def test_marks_model_pretrained(self, default_model, mixed_examples, rng):
        updated = pretrain(default_model, mixed_examples, rng=rng)
        assert updated.pretrained is True
        assert updated.pretraining_examples == len(mixed_examples)
        assert updated.version == default_model.version + 1
        assert updated.last_trained >= default_model.last_trained

    @pytest.mark.parametrize("epochs", range(1, 11))
    def test_misclassified_update_per_epoch(self, rng, epochs):
        confidence, value = 0.5, 2.0
        example = make_example(
            FeatureVector(near_relationship_word=value), Label.PHI, confidence=confidence
        )
        updated = pretrain(zero_model(), [example], rng=rng, epochs=epochs)

        # reward = -confidence and (actual - predicted) = 1 in every epoch
        expected = sum(-0.2 * 0.95**e * confidence * 1 * value for e in range(epochs))
        assert updated.weights["near_relationship_word"] == pytest.approx(expected)
        assert updated.weights["has_title_before"] == 0.0

    def test_first_epoch_update(self, rng):
        example = make_example(FeatureVector(has_title_before=1), Label.PHI, confidence=0.8)
        updated = pretrain(zero_model(), [example], rng=rng, epochs=1)
        assert updated.weights["has_title_before"] == pytest.approx(-0.2 * 0.8)

    def test_weight_clamped_low(self, rng):
        examples = [make_example(FeatureVector(has_title_before=1), Label.PHI)] * 10
        updated = pretrain(zero_model(), examples, rng=rng, initial_rate=5.0)
        assert updated.weights["has_title_before"] == -10.0

    def test_weight_clamped_high(self, rng):
        examples = [make_example(FeatureVector(looks_like_date=1), Label.NOT_PHI)] * 10
        updated = pretrain(zero_model(looks_like_date=5.0), examples, rng=rng, initial_rate=5.0)
        assert updated.weights["looks_like_date"] == 10.0

    def test_epoch_callback(self, default_model, mixed_examples, rng):
        seen = []
        pretrain(default_model, mixed_examples, rng=rng, on_epoch=lambda e, n: seen.append((e, n)))
        assert seen == [(e, 10) for e in range(1, 11)]

    def test_correct_predictions_leave_weights(self, default_model, rng):
        example = make_example(extract_features("03/15/2024", "Visit on ", " for checkup."), Label.PHI)
        updated = pretrain(default_model, [example], rng=rng)
        assert updated.weights == default_model.weights

    def test_empty_examples_still_complete(self, default_model, rng):
        updated = pretrain(default_model, [], rng=rng)
        assert updated.pretrained is True
        assert updated.pretraining_examples == 0
