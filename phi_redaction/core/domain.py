# phi_redaction/core/domain.py

"""Domain models for tokens, features, models, training examples and detections."""

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from phi_redaction.core.definitions import CONTEXT_CHARS, FEATURE_NAMES, Label
from phi_redaction.core.exceptions import FeatureSchemaError


@dataclass(frozen=True)
class Token:
    """A maximal run of word or non-word characters.

    Attributes:
        text: Token text
        start: Character offset of the token in the source string
    """

    text: str
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)


@dataclass(frozen=True)
class FeatureVector:
    """Fixed-schema feature record. Field order must match FEATURE_NAMES."""

    has_title_before: float = 0
    has_possessive: float = 0
    near_patient_word: float = 0
    near_geographic_word: float = 0
    near_institution_word: float = 0
    capitalized_sequence: float = 0
    after_preposition: float = 0
    has_suffix_indicator: float = 0
    in_quotes: float = 0
    near_relationship_word: float = 0
    looks_like_date: float = 0
    looks_like_phone: float = 0
    looks_like_email: float = 0
    looks_like_ssn: float = 0
    looks_like_mrn: float = 0
    looks_like_address: float = 0
    looks_like_zip: float = 0
    is_all_caps: float = 0
    has_numbers: float = 0
    length_over_10: float = 0
    common_word: float = 0

    @classmethod
    def from_dict(cls, values: Mapping[str, float]) -> "FeatureVector":
        """Builds a vector from a mapping; missing names default to 0.

        Raises:
            FeatureSchemaError: If the mapping contains names outside the catalog.
        """
        unknown = set(values) - set(FEATURE_NAMES)
        if unknown:
            raise FeatureSchemaError(f"Unknown feature names: {sorted(unknown)}")
        return cls(**values)

    def get(self, name: str) -> float:
        return getattr(self, name, 0)

    def items(self) -> Iterator[Tuple[str, float]]:
        for name in FEATURE_NAMES:
            yield name, getattr(self, name)

    def nonzero(self) -> Iterator[Tuple[str, float]]:
        return ((name, value) for name, value in self.items() if value != 0)

    def to_dict(self) -> Dict[str, float]:
        return dict(self.items())


@dataclass(frozen=True)
class Model:
    """Linear scoring model.

    Attributes:
        weights: Feature name to weight, each in [-WEIGHT_BOUND, WEIGHT_BOUND]
        learning_rate: Step size for supervised retraining
        version: Incremented by one per completed training run
        last_trained: Unix timestamp of the last training run
        pretrained: Whether reward-shaped pretraining has run
        pretraining_examples: Number of examples used by the last pretraining
    """

    weights: Dict[str, float]
    learning_rate: float
    version: int = 1
    last_trained: float = field(default_factory=time.time)
    pretrained: bool = False
    pretraining_examples: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": dict(self.weights),
            "learning_rate": self.learning_rate,
            "version": self.version,
            "last_trained": self.last_trained,
            "pretrained": self.pretrained,
            "pretraining_examples": self.pretraining_examples,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Model":
        return cls(
            weights={k: float(v) for k, v in data["weights"].items()},
            learning_rate=float(data["learning_rate"]),
            version=int(data.get("version", 1)),
            last_trained=float(data.get("last_trained", time.time())),
            pretrained=bool(data.get("pretrained", False)),
            pretraining_examples=int(data.get("pretraining_examples", 0)),
        )


@dataclass(frozen=True)
class TrainingExample:
    """A labeled example in the training store."""

    id: str
    word: str
    before_context: str
    after_context: str
    features: FeatureVector
    label: str
    confidence: float
    source: str
    timestamp: float

    @classmethod
    def create(
        cls,
        word: str,
        before_context: str,
        after_context: str,
        features: FeatureVector,
        label: str,
        confidence: float = 1.0,
        source: str = "feedback",
    ) -> "TrainingExample":
        """Builds an example, clipping contexts to CONTEXT_CHARS characters."""
        if label not in (Label.PHI, Label.NOT_PHI):
            raise ValueError(f"Invalid label: {label!r}")
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"Confidence must be in [0, 1], got {confidence}")
        return cls(
            id=f"{source}_{uuid.uuid4().hex}",
            word=word,
            before_context=before_context[-CONTEXT_CHARS:],
            after_context=after_context[:CONTEXT_CHARS],
            features=features,
            label=label,
            confidence=confidence,
            source=source,
            timestamp=time.time(),
        )

    @property
    def is_phi(self) -> bool:
        return self.label == Label.PHI

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "word": self.word,
            "before_context": self.before_context,
            "after_context": self.after_context,
            "features": self.features.to_dict(),
            "label": self.label,
            "confidence": self.confidence,
            "source": self.source,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrainingExample":
        return cls(
            id=str(data["id"]),
            word=data["word"],
            before_context=data.get("before_context", ""),
            after_context=data.get("after_context", ""),
            features=FeatureVector.from_dict(data.get("features", {})),
            label=data["label"],
            confidence=float(data.get("confidence", 1.0)),
            source=data.get("source", "feedback"),
            timestamp=float(data.get("timestamp", 0.0)),
        )


class ExampleStore:
    """Append-only collection of training examples."""

    def __init__(self, examples: Optional[Iterable[TrainingExample]] = None) -> None:
        self._examples: List[TrainingExample] = list(examples or [])

    def append(self, example: TrainingExample) -> None:
        self._examples.append(example)

    def extend(self, examples: Iterable[TrainingExample]) -> None:
        self._examples.extend(examples)

    @property
    def examples(self) -> Tuple[TrainingExample, ...]:
        return tuple(self._examples)

    def __len__(self) -> int:
        return len(self._examples)

    def __iter__(self) -> Iterator[TrainingExample]:
        return iter(tuple(self._examples))

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._examples]

    @classmethod
    def from_list(cls, data: Iterable[Mapping[str, Any]]) -> "ExampleStore":
        return cls(TrainingExample.from_dict(d) for d in data)

    def __repr__(self):
        return f"<ExampleStore examples={len(self._examples)}>"


@dataclass(frozen=True)
class Stats:
    """Aggregate counters projected from the training store labels."""

    correct: int = 0
    incorrect: int = 0
    total: int = 0
    accuracy: float = 0.0

    @classmethod
    def from_examples(cls, examples: Iterable[TrainingExample]) -> "Stats":
        correct = incorrect = 0
        for example in examples:
            if example.is_phi:
                correct += 1
            else:
                incorrect += 1
        total = correct + incorrect
        accuracy = round(correct / total * 100, 1) if total else 0.0
        return cls(correct=correct, incorrect=incorrect, total=total, accuracy=accuracy)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correct": self.correct,
            "incorrect": self.incorrect,
            "total": self.total,
            "accuracy": self.accuracy,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Stats":
        return cls(
            correct=int(data.get("correct", 0)),
            incorrect=int(data.get("incorrect", 0)),
            total=int(data.get("total", 0)),
            accuracy=float(data.get("accuracy", 0.0)),
        )


@dataclass(frozen=True)
class Detection:
    """A token scored as PHI during a single detect pass.

    Attributes:
        category: PHI category (see PHICategory)
        value: Token text as it appears in the source
        score: Linear model score
        features: Feature vector the score was computed from
        before_context: Context preceding the token
        after_context: Context following the token
        index: Character offset of the token in the source text
        note_index: Position of the source document in a batch
        feedback: 'correct' or 'incorrect' once a reviewer has judged it
    """

    category: str
    value: str
    score: float
    features: FeatureVector
    before_context: str
    after_context: str
    index: int
    note_index: Optional[int] = None
    feedback: Optional[str] = None

    @property
    def end(self) -> int:
        return self.index + len(self.value)

    @property
    def placeholder(self) -> str:
        return f"[REDACTED:{self.category.upper()}]"

    def with_feedback(self, is_correct: bool) -> "Detection":
        return replace(self, feedback="correct" if is_correct else "incorrect")


@dataclass
class DetectionResult:
    """Result object returned by a detect pass.

    Attributes:
        original_text: Unredacted input text
        redacted_text: Text with PHI replaced by placeholders
        detections: Detections in document order
        metadata: Additional processing information
    """

    original_text: str
    redacted_text: str
    detections: List[Detection] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchResult:
    """Per-document results of a batch detect pass."""

    results: List[DetectionResult] = field(default_factory=list)
    total_phi: int = 0
