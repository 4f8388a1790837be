# phi_redaction/engine/recognizers.py

"""Presidio pattern recognizers used by the weak-supervision labeler."""

import logging
from typing import Dict, List

from presidio_analyzer import Pattern, PatternRecognizer, RecognizerResult

from phi_redaction.core.loader import PatternLoader

logger = logging.getLogger(__name__)

# Pattern groups in patterns.yaml that yield PHI labels
WEAK_LABEL_ENTITIES = ["DATE", "PHONE", "MRN"]

_PATTERN_CACHE: Dict[str, List[Pattern]] = {}


def _get_cached_patterns(entity_type: str) -> List[Pattern]:
    """Retrieves list of Pattern objects from cache or creates them."""
    if entity_type in _PATTERN_CACHE:
        return _PATTERN_CACHE[entity_type]

    loader = PatternLoader.get_instance()
    pattern_defs = loader.get_patterns(entity_type)

    patterns = [
        Pattern(name=p["name"], regex=p["regex"], score=float(p["score"]))
        for p in pattern_defs
    ]

    _PATTERN_CACHE[entity_type] = patterns
    return patterns


class WeakLabelRecognizer(PatternRecognizer):
    """Regex recognizer whose pattern score is the label confidence."""

    def __init__(self, entity_type: str, patterns: List[Pattern]):
        super().__init__(
            supported_entity=entity_type,
            name=f"WeakLabel_{entity_type}_Recognizer",
            patterns=patterns,
        )

    def find(self, text: str) -> List[RecognizerResult]:
        """Returns all matches in text ordered by position."""
        if not text:
            return []
        results = self.analyze(text=text, entities=self.supported_entities)
        return sorted(results, key=lambda r: (r.start, r.end))


_recognizers: List[WeakLabelRecognizer] = []


def create_weak_label_recognizers() -> List[WeakLabelRecognizer]:
    """Create (once) the recognizers for every labeler pattern group."""
    if _recognizers:
        return _recognizers

    for entity in WEAK_LABEL_ENTITIES:
        patterns = _get_cached_patterns(entity)
        if not patterns:
            logger.warning(f"Skipping weak-label recognizer for {entity}: No patterns found.")
            continue
        _recognizers.append(WeakLabelRecognizer(entity, patterns))

    logger.info(f"Initialized {len(_recognizers)} weak-label recognizers")
    return _recognizers
