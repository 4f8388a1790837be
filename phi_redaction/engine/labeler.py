# phi_redaction/engine/labeler.py

"""Weak-supervision labeler that manufactures pretraining examples from raw notes.

Two passes over a document:

1. Regex recognizers for dates, phone numbers and record identifiers emit
   'phi' labels with the confidence of the matching pattern.
2. Capitalized word tokens are labeled from nearby cues: a place or
   institution word marks the token 'not_phi'; otherwise a clinical-role,
   title or kinship word before it marks it 'phi'. Tokens with neither cue
   stay unlabeled.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from phi_redaction.core.definitions import CONTEXT_CHARS, Label
from phi_redaction.core.domain import TrainingExample
from phi_redaction.core.loader import PatternLoader
from phi_redaction.engine.features import extract_features
from phi_redaction.engine.recognizers import create_weak_label_recognizers
from phi_redaction.engine.tokenizer import context_window, tokenize

logger = logging.getLogger(__name__)

NAME_CONFIDENCE = 0.8
PLACE_CONFIDENCE = 0.7

_CANDIDATE_WORD = re.compile(r"^[A-Z][a-z]{2,}$")


@dataclass(frozen=True)
class WeakLabel:
    """A heuristically labeled token with its surrounding text."""

    word: str
    before_context: str
    after_context: str
    label: str
    confidence: float


class _CueMatcher:
    def __init__(self, loader: PatternLoader) -> None:
        self.name_cue = self._compile(loader.get_vocabulary("name_cues"))
        self.place_cue = self._compile(loader.get_vocabulary("place_cues"))

    @staticmethod
    def _compile(terms: List[str]) -> re.Pattern:
        alternation = "|".join(re.escape(t) for t in sorted(terms, key=len, reverse=True))
        return re.compile(r"\b(?:" + alternation + r")\b", re.IGNORECASE)


_cues: Optional[_CueMatcher] = None


def _get_cues() -> _CueMatcher:
    global _cues
    if _cues is None:
        _cues = _CueMatcher(PatternLoader.get_instance())
    return _cues


def label_document(text: str) -> List[WeakLabel]:
    """Produces weak labels for one document.

    Args:
        text: Raw clinical note

    Returns:
        Pattern labels in recognizer order followed by name/place labels
    """
    labels: List[WeakLabel] = []
    if not text:
        return labels

    for recognizer in create_weak_label_recognizers():
        for result in recognizer.find(text):
            labels.append(
                WeakLabel(
                    word=text[result.start : result.end],
                    before_context=text[max(0, result.start - CONTEXT_CHARS) : result.start],
                    after_context=text[result.end : result.end + CONTEXT_CHARS],
                    label=Label.PHI,
                    confidence=result.score,
                )
            )

    cues = _get_cues()
    tokens = tokenize(text)
    for i, token in enumerate(tokens):
        if not _CANDIDATE_WORD.match(token.text):
            continue

        before, after = context_window(tokens, i)
        is_place = bool(cues.place_cue.search(before + " " + after))
        is_name = bool(cues.name_cue.search(before))

        if is_place:
            label, confidence = Label.NOT_PHI, PLACE_CONFIDENCE
        elif is_name:
            label, confidence = Label.PHI, NAME_CONFIDENCE
        else:
            continue

        labels.append(
            WeakLabel(
                word=token.text,
                before_context=before[-CONTEXT_CHARS:],
                after_context=after[:CONTEXT_CHARS],
                label=label,
                confidence=confidence,
            )
        )

    return labels


def label_corpus(
    notes: Iterable[str],
    source: str,
    max_notes: Optional[int] = None,
    progress: Optional[Callable[[int], None]] = None,
) -> List[TrainingExample]:
    """Labels every note and turns each weak label into a training example.

    Args:
        notes: Raw documents
        source: Source tag recorded on the examples
        max_notes: Upper bound on the number of notes processed
        progress: Called with the running note count every 10 notes
    """
    examples: List[TrainingExample] = []
    processed = 0

    for note in notes:
        if max_notes is not None and processed >= max_notes:
            break
        processed += 1
        for item in label_document(note):
            examples.append(
                TrainingExample.create(
                    word=item.word,
                    before_context=item.before_context,
                    after_context=item.after_context,
                    features=extract_features(item.word, item.before_context, item.after_context),
                    label=item.label,
                    confidence=item.confidence,
                    source=source,
                )
            )
        if progress is not None and processed % 10 == 0:
            progress(processed)

    logger.info(
        "Weak labeling completed",
        extra={"notes": processed, "examples": len(examples), "source": source},
    )
    return examples
