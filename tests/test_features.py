"""Tests for feature extraction and the shape detector registry."""

import re
from dataclasses import fields

import pytest

from phi_redaction.core.definitions import FEATURE_NAMES
from phi_redaction.core.domain import FeatureVector
from phi_redaction.core.exceptions import FeatureSchemaError
from phi_redaction.engine.features import extract_features
from phi_redaction.logic.shapes import (
    ShapeDetector,
    get_shape_detector,
    register_shape_detector,
    shape_detectors,
)


class TestFeatureVector:
    """Tests for the fixed-schema feature record."""

    def test_catalog_has_21_features(self):
        assert len(FEATURE_NAMES) == 21
        assert list(FeatureVector().to_dict()) == list(FEATURE_NAMES)

    def test_fields_follow_catalog_order(self):
        assert tuple(f.name for f in fields(FeatureVector)) == FEATURE_NAMES

    def test_missing_names_default_to_zero(self):
        vector = FeatureVector.from_dict({"looks_like_date": 1})
        assert vector.looks_like_date == 1
        assert vector.has_title_before == 0

    def test_unknown_names_rejected(self):
        with pytest.raises(FeatureSchemaError):
            FeatureVector.from_dict({"looks_like_passport": 1})

    def test_nonzero(self):
        vector = FeatureVector(has_numbers=1, is_all_caps=1)
        assert dict(vector.nonzero()) == {"is_all_caps": 1, "has_numbers": 1}


class TestContextFeatures:
    """Tests for context-derived features."""

    def test_name_with_title_and_patient(self):
        features = extract_features("Johnson", "Patient Mr. ", " arrived.")
        assert features.has_title_before == 1
        assert features.near_patient_word == 1
        assert features.near_geographic_word == 0

    def test_place_after_preposition(self):
        features = extract_features("Denver", "Traveling from ", " to the clinic.")
        assert features.near_geographic_word == 1
        assert features.after_preposition == 1
        assert features.near_institution_word == 1

    def test_geographic_word_must_be_whole_word(self):
        # 'patient' contains 'at' but is not a geographic cue
        features = extract_features("Smith", "the patient ", "")
        assert features.near_geographic_word == 0

    def test_geographic_word_only_in_last_three_words(self):
        features = extract_features("Smith", "from one two three ", "")
        assert features.near_geographic_word == 0

    def test_possessive_immediately_after(self):
        assert extract_features("John", "", "'s chart").has_possessive == 1
        assert extract_features("John", "", " has a son's chart").has_possessive == 0

    def test_relationship_word_needs_word_boundary(self):
        assert extract_features("Smith", "Mr Johnson ", "").near_relationship_word == 0
        assert extract_features("Smith", "her son ", "").near_relationship_word == 1

    def test_capitalized_sequence_uses_raw_case(self):
        assert extract_features("John", "", " Smith was seen").capitalized_sequence == 1
        assert extract_features("John", "", " smith was seen").capitalized_sequence == 0

    def test_suffix_and_quotes(self):
        features = extract_features("Smith", 'called "', ' Jr" today')
        assert features.has_suffix_indicator == 1
        assert features.in_quotes == 1

    def test_empty_contexts(self):
        features = extract_features("word")
        assert all(v == 0 for _, v in features.items())


class TestSurfaceFeatures:
    """Tests for shape and surface features of the token itself."""

    @pytest.mark.parametrize(
        "word,feature",
        [
            ("03/15/2024", "looks_like_date"),
            ("(555) 123-4567", "looks_like_phone"),
            ("jane@example.org", "looks_like_email"),
            ("123-45-6789", "looks_like_ssn"),
            ("12345", "looks_like_zip"),
            ("12345-6789", "looks_like_zip"),
        ],
    )
    def test_shapes(self, word, feature):
        assert extract_features(word).get(feature) == 1

    def test_ssn_is_not_a_date(self):
        assert extract_features("123-45-6789").looks_like_date == 0

    def test_mrn_from_context(self):
        assert extract_features("00123456", "MRN: ", "").looks_like_mrn == 1

    def test_address_from_context(self):
        assert extract_features("Main", "lives at 42 ", " Street").looks_like_address == 1

    def test_surface_indicators(self):
        features = extract_features("HIPAA2024ABC")
        assert features.is_all_caps == 1
        assert features.has_numbers == 1
        assert features.length_over_10 == 1

    def test_single_letter_is_not_all_caps(self):
        assert extract_features("A").is_all_caps == 0

    def test_common_word_is_case_insensitive(self):
        assert extract_features("The").common_word == 1


class TestShapeRegistry:
    """Tests for the shape detector registry."""

    def test_defaults_cover_shape_features(self):
        names = {d.feature_name for d in shape_detectors()}
        assert {"looks_like_date", "looks_like_phone", "looks_like_zip"} <= names

    def test_unknown_feature_returns_none(self):
        assert get_shape_detector("looks_like_passport") is None

    def test_register_replaces_detector(self):
        original = get_shape_detector("looks_like_email")

        class StrictEmail(ShapeDetector):
            feature_name = "looks_like_email"
            pattern = re.compile(r"^[^@\s]+@[^@\s]+\.\w+$")

            def matches(self, word, before="", after=""):
                return bool(self.pattern.match(word))

        try:
            register_shape_detector(StrictEmail())
            assert extract_features("a@b").looks_like_email == 0
            assert extract_features("a@b.org").looks_like_email == 1
        finally:
            register_shape_detector(original)

    def test_register_requires_feature_name(self):
        class Nameless(ShapeDetector):
            def matches(self, word, before="", after=""):
                return False

        with pytest.raises(ValueError):
            register_shape_detector(Nameless())
