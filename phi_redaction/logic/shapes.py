# phi_redaction/logic/shapes.py

"""Shape detection strategies for structured PHI (dates, phones, identifiers)."""

import re
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Pattern

from phi_redaction.core.loader import PatternLoader

logger = logging.getLogger(__name__)


class ShapeDetector(ABC):
    """Base class for token shape predicates.

    Each detector computes one indicator feature. Detectors that describe
    PHI spanning several word-boundary tokens (e.g. '03/15/2024') also
    expose a span pattern used by the tokenizer to merge those tokens.
    """

    feature_name: str = ""
    span_pattern: Optional[Pattern] = None

    @abstractmethod
    def matches(self, word: str, before: str = "", after: str = "") -> bool:
        """Returns True if the token (and its raw context) has this shape.

        Args:
            word: Token text
            before: Raw context preceding the token
            after: Raw context following the token
        """
        pass


class DateShape(ShapeDetector):
    """Numeric day/month/year dates."""

    feature_name = "looks_like_date"
    DATE_PATTERN = re.compile(r"(?<!\d)\d{1,2}[-/]\d{1,2}[-/]\d{2,4}(?!\d)")
    span_pattern = DATE_PATTERN

    def matches(self, word: str, before: str = "", after: str = "") -> bool:
        return bool(self.DATE_PATTERN.search(word))


class PhoneShape(ShapeDetector):
    """US phone numbers, optionally with a parenthesised area code."""

    feature_name = "looks_like_phone"
    PHONE_PATTERN = re.compile(r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
    span_pattern = re.compile(r"(?<![\w(])\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}(?!\d)")

    def matches(self, word: str, before: str = "", after: str = "") -> bool:
        return bool(self.PHONE_PATTERN.search(word))


class EmailShape(ShapeDetector):
    """Anything containing an at-sign."""

    feature_name = "looks_like_email"
    span_pattern = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")

    def matches(self, word: str, before: str = "", after: str = "") -> bool:
        return "@" in word


class SSNShape(ShapeDetector):
    """US social security numbers (###-##-####)."""

    feature_name = "looks_like_ssn"
    SSN_PATTERN = re.compile(r"(?<!\d)\d{3}-\d{2}-\d{4}(?!\d)")
    span_pattern = SSN_PATTERN

    def matches(self, word: str, before: str = "", after: str = "") -> bool:
        return bool(self.SSN_PATTERN.search(word))


class MRNShape(ShapeDetector):
    """Record numbers introduced by an ID/MRN marker anywhere in the window."""

    feature_name = "looks_like_mrn"

    def __init__(self, markers: Optional[List[str]] = None):
        markers = markers or ["MRN", "ID"]
        self.pattern = re.compile(
            r"\b(?:" + "|".join(re.escape(m) for m in markers) + r")[\s:#]*\d+",
            re.IGNORECASE,
        )

    def matches(self, word: str, before: str = "", after: str = "") -> bool:
        return bool(self.pattern.search(before + word + after))


class AddressShape(ShapeDetector):
    """House number, street name and street suffix within the window."""

    feature_name = "looks_like_address"

    def __init__(self, street_suffixes: Optional[List[str]] = None):
        suffixes = street_suffixes or ["street", "st", "avenue", "ave", "road", "rd"]
        self.pattern = re.compile(
            r"\d+\s+[A-Z][a-z]+\s+(?:"
            + "|".join(re.escape(s) for s in suffixes)
            + r")\b",
            re.IGNORECASE,
        )

    def matches(self, word: str, before: str = "", after: str = "") -> bool:
        return bool(self.pattern.search(before + word + after))


class ZipShape(ShapeDetector):
    """Five or nine digit ZIP codes; the token must be the whole code."""

    feature_name = "looks_like_zip"
    ZIP_PATTERN = re.compile(r"\d{5}(?:-\d{4})?")
    span_pattern = re.compile(r"(?<![\w-])\d{5}-\d{4}(?![\w-])")

    def matches(self, word: str, before: str = "", after: str = "") -> bool:
        return bool(self.ZIP_PATTERN.fullmatch(word))


# Registry of shape detectors keyed by the feature they compute
_shape_registry: Dict[str, ShapeDetector] = {}
_defaults_registered = False


def _ensure_defaults() -> None:
    global _defaults_registered
    if _defaults_registered:
        return
    _defaults_registered = True

    loader = PatternLoader.get_instance()
    for detector in (
        DateShape(),
        PhoneShape(),
        EmailShape(),
        SSNShape(),
        MRNShape(loader.get_vocabulary("id_markers")),
        AddressShape(loader.get_vocabulary("street_suffixes")),
        ZipShape(),
    ):
        _shape_registry.setdefault(detector.feature_name, detector)


def register_shape_detector(detector: ShapeDetector) -> None:
    """Adds or replaces the detector for its feature name."""
    if not detector.feature_name:
        raise ValueError("Shape detector must declare a feature_name")
    _ensure_defaults()
    if detector.feature_name in _shape_registry:
        logger.debug(f"Replacing shape detector for {detector.feature_name}")
    _shape_registry[detector.feature_name] = detector


def get_shape_detector(feature_name: str) -> Optional[ShapeDetector]:
    """Returns the registered detector for a feature, or None."""
    _ensure_defaults()
    detector = _shape_registry.get(feature_name)
    if detector is None:
        logger.warning(f"No shape detector registered for feature: {feature_name}")
    return detector


def shape_detectors() -> List[ShapeDetector]:
    """Returns all registered detectors in registration order."""
    _ensure_defaults()
    return list(_shape_registry.values())


def span_patterns() -> List[Pattern]:
    """Returns the multi-token span patterns of all registered detectors."""
    return [d.span_pattern for d in shape_detectors() if d.span_pattern is not None]
