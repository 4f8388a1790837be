# phi_redaction/engine/features.py

"""Lexical and contextual feature extraction for candidate PHI tokens."""

import logging
import re
import string
from typing import Dict, FrozenSet, List, Optional, Pattern

from phi_redaction.core.domain import FeatureVector
from phi_redaction.core.loader import PatternLoader
from phi_redaction.logic.shapes import shape_detectors

logger = logging.getLogger(__name__)

_CAPITALIZED_WORD = re.compile(r"^[A-Z][a-z]+$")
_POSSESSIVE = re.compile(r"^['’]s\b")
_DIGIT = re.compile(r"\d")


def _alternation(terms: List[str]) -> str:
    return "|".join(re.escape(t) for t in sorted(terms, key=len, reverse=True))


class ContextRules:
    """Compiled context cues built from the vocabulary in patterns.yaml."""

    def __init__(self, loader: PatternLoader) -> None:
        self.title_before: Pattern = re.compile(
            r"\b(?:" + _alternation(loader.get_vocabulary("titles")) + r")\.?\s*$"
        )
        self.preposition_before: Pattern = re.compile(
            r"\b(?:" + _alternation(loader.get_vocabulary("prepositions")) + r")\s*$"
        )
        self.relationship: Pattern = re.compile(
            r"\b(?:" + _alternation(loader.get_vocabulary("relationship_words")) + r")\b"
        )
        self.suffix: Pattern = re.compile(
            r"\b(?:" + _alternation(loader.get_vocabulary("suffixes")) + r")\b"
        )
        self.patient_words: List[str] = loader.get_vocabulary("patient_words")
        self.institution_words: List[str] = loader.get_vocabulary("institution_words")
        self.geographic_words: FrozenSet[str] = frozenset(
            loader.get_vocabulary("geographic_words")
        )
        self.common_words: FrozenSet[str] = frozenset(
            w.lower() for w in loader.get_vocabulary("common_words")
        )


_rules: Optional[ContextRules] = None


def get_context_rules() -> ContextRules:
    """Returns the lazily compiled context rules."""
    global _rules
    if _rules is None:
        _rules = ContextRules(PatternLoader.get_instance())
        logger.debug("Compiled feature context rules")
    return _rules


def _last_words(text: str, count: int) -> List[str]:
    words = (w.strip(string.punctuation) for w in text.split()[-count:])
    return [w for w in words if w]


def extract_features(
    word: str, before_context: str = "", after_context: str = ""
) -> FeatureVector:
    """Computes the full feature catalog for one token.

    Context cues are case-insensitive; shape and surface cues look at the
    token as written. Empty contexts are valid.

    Args:
        word: Token text
        before_context: Text preceding the token (up to 10 tokens)
        after_context: Text following the token (up to 10 tokens)

    Returns:
        FeatureVector with a value for every catalog feature
    """
    rules = get_context_rules()
    before = before_context.lower()
    after = after_context.lower()
    values: Dict[str, float] = {}

    values["has_title_before"] = 1 if rules.title_before.search(before) else 0
    values["has_possessive"] = 1 if _POSSESSIVE.search(after) else 0
    values["near_patient_word"] = (
        1 if any(w in before or w in after for w in rules.patient_words) else 0
    )
    values["near_geographic_word"] = (
        1 if any(w in rules.geographic_words for w in _last_words(before, 3)) else 0
    )
    values["near_institution_word"] = (
        1 if any(w in after for w in rules.institution_words) else 0
    )

    after_words = after_context.split()
    values["capitalized_sequence"] = (
        1 if after_words and _CAPITALIZED_WORD.match(after_words[0]) else 0
    )
    values["after_preposition"] = 1 if rules.preposition_before.search(before) else 0
    values["near_relationship_word"] = (
        1 if rules.relationship.search(before) or rules.relationship.search(after) else 0
    )
    values["has_suffix_indicator"] = 1 if rules.suffix.search(after) else 0
    values["in_quotes"] = 1 if '"' in before and '"' in after else 0

    for detector in shape_detectors():
        values[detector.feature_name] = (
            1 if detector.matches(word, before_context, after_context) else 0
        )

    values["is_all_caps"] = 1 if len(word) > 1 and word == word.upper() else 0
    values["has_numbers"] = 1 if _DIGIT.search(word) else 0
    values["length_over_10"] = 1 if len(word) > 10 else 0
    values["common_word"] = 1 if word.lower() in rules.common_words else 0

    return FeatureVector.from_dict(values)
