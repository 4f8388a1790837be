# phi_redaction/service/pipeline.py

"""Detection service: owns the model, training store and stats.

The engine functions are pure; this layer threads the current model and
training store through them, persists every published state and guards
training runs so at most one is active.
"""

import json
import logging
import random
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from phi_redaction.core.definitions import ExampleSource, Label, StorageKey
from phi_redaction.core.domain import (
    BatchResult,
    Detection,
    DetectionResult,
    ExampleStore,
    Model,
    Stats,
    TrainingExample,
)
from phi_redaction.core.exceptions import (
    ConfigurationError,
    FeatureSchemaError,
    PersistenceError,
    PipelineError,
    ResetNotConfirmedError,
    TrainingInProgressError,
)
from phi_redaction.engine import detector, learning
from phi_redaction.engine.corpus import fetch_corpus, generate_synthetic_notes
from phi_redaction.engine.labeler import label_corpus
from phi_redaction.engine.scoring import create_default_model
from phi_redaction.service.config import Settings, settings as default_settings
from phi_redaction.service.storage import KeyValueStorage, create_storage

logger = logging.getLogger(__name__)

# (percent complete, status message)
ProgressCallback = Callable[[float, str], None]
CorpusFetcher = Callable[[Sequence[str], float], List[str]]


class PHIDetectionService:
    """Stateful wrapper around the detection and learning engine."""

    _instance: Optional["PHIDetectionService"] = None
    _lock = threading.Lock()

    def __init__(
        self,
        storage: KeyValueStorage,
        settings: Optional[Settings] = None,
        fetcher: Optional[CorpusFetcher] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Initialize the service.

        Args:
            storage: Persistence collaborator
            settings: Application settings (defaults to the module singleton)
            fetcher: Corpus fetcher called as fetcher(sources, timeout)
            rng: Shuffle source; seeded from settings.shuffle_seed if omitted
        """
        self.storage = storage
        self.settings = settings or default_settings
        self._fetcher = fetcher or fetch_corpus
        self._rng = rng or random.Random(self.settings.shuffle_seed)
        self._training_lock = threading.Lock()

        self._model: Optional[Model] = None
        self._store = ExampleStore()
        self._stats = Stats()
        self._pretrained = False

    @classmethod
    def get_instance(cls) -> "PHIDetectionService":
        """Returns the process-wide service built from the global settings.

        Raises:
            PipelineError: If the service cannot be initialized
        """
        if cls._instance is None:
            with cls._lock:
                # Double-checked locking pattern
                if cls._instance is None:
                    try:
                        logger.info("Initializing PHI detection service")
                        storage = create_storage(
                            default_settings.storage_backend, default_settings.storage_path
                        )
                        service = cls(storage)
                        service.initialize()
                        cls._instance = service
                        logger.info("PHI detection service initialized successfully")

                    except Exception as e:
                        logger.error("Failed to initialize PHI detection service", exc_info=True)
                        if isinstance(e, (ConfigurationError, PipelineError)):
                            raise
                        raise PipelineError("PHI detection service initialization failed") from e

        return cls._instance

    # State

    @property
    def model(self) -> Optional[Model]:
        return self._model

    @property
    def examples(self) -> Sequence[TrainingExample]:
        return self._store.examples

    @property
    def stats(self) -> Stats:
        return self._stats

    @property
    def is_pretrained(self) -> bool:
        return self._pretrained

    @property
    def is_training(self) -> bool:
        return self._training_lock.locked()

    def initialize(self, progress: Optional[ProgressCallback] = None) -> None:
        """Restores persisted state, creating a default model if none exists.

        Pretrains once when no pretrained state was found and
        settings.pretrain_on_startup is set.
        """
        model_data = self._load(StorageKey.MODEL)
        if model_data is not None:
            try:
                self._model = Model.from_dict(model_data)
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning("Stored model is unreadable; starting from defaults", exc_info=True)

        if self._model is None:
            self._model = create_default_model()
            self._save(StorageKey.MODEL, self._model.to_dict())

        store_data = self._load(StorageKey.TRAINING_DB)
        if store_data is not None:
            try:
                self._store = ExampleStore.from_list(store_data)
            except (KeyError, TypeError, ValueError, AttributeError, FeatureSchemaError):
                logger.warning("Stored training examples are unreadable; ignoring", exc_info=True)
                self._store = ExampleStore()

        self._stats = Stats.from_examples(self._store)
        self._pretrained = self._load_raw(StorageKey.PRETRAINED) == "true"

        logger.info(
            "Service state loaded",
            extra={
                "model_version": self._model.version,
                "examples": len(self._store),
                "pretrained": self._pretrained,
            },
        )

        if not self._pretrained and self.settings.pretrain_on_startup:
            self.pretrain(progress)

    # Detection

    def detect(self, text: str) -> DetectionResult:
        return detector.detect(text, self._model)

    def detect_batch(self, texts: Sequence[str]) -> BatchResult:
        return detector.detect_batch(texts, self._model)

    # Learning

    def provide_feedback(self, detection: Detection, is_correct: bool) -> Stats:
        """Records a reviewer judgment on a detection and retrains.

        The example is stored before retraining starts, so a
        TrainingInProgressError still leaves it in the store for the next run.

        Returns:
            Updated statistics
        """
        example = TrainingExample.create(
            word=detection.value,
            before_context=detection.before_context,
            after_context=detection.after_context,
            features=detection.features,
            label=Label.PHI if is_correct else Label.NOT_PHI,
            confidence=1.0,
            source=ExampleSource.FEEDBACK,
        )
        self._store.append(example)
        self._stats = Stats.from_examples(self._store)
        self._save(StorageKey.TRAINING_DB, self._store.to_list())
        self._save(StorageKey.STATS, self._stats.to_dict())

        logger.info(
            "Feedback recorded",
            extra={"category": detection.category, "is_correct": is_correct, "total": self._stats.total},
        )

        self.retrain()
        return self._stats

    def retrain(self) -> Optional[Model]:
        """Retrains the current model over the whole training store."""
        with self._training():
            updated = learning.retrain(self._model, self._store.examples, rng=self._rng)
            if updated is not self._model:
                self._model = updated
                self._save(StorageKey.MODEL, updated.to_dict())
        return self._model

    def pretrain(self, progress: Optional[ProgressCallback] = None) -> Optional[Model]:
        """Bootstraps the model from weakly labeled notes.

        Fetches the configured corpus, falling back to synthetic notes when
        nothing could be fetched, labels the notes, appends the examples to
        the store and runs reward-shaped pretraining over the new examples.

        Args:
            progress: Called with (percent, message) as the run advances

        Raises:
            TrainingInProgressError: If another training run is active
        """
        if self._model is None:
            logger.warning("Pretrain requested without a model")
            return None

        def report(percent: float, message: str) -> None:
            if progress is not None:
                progress(percent, message)

        with self._training():
            report(5, "Fetching medical notes...")
            sources = self.settings.corpus_sources
            notes: List[str] = []
            for i, url in enumerate(sources):
                notes.extend(self._fetcher([url], self.settings.fetch_timeout))
                report(5 + (i + 1) / len(sources) * 10, "Fetching medical notes...")

            if notes:
                source = ExampleSource.PRETRAIN_FETCHED
            else:
                logger.warning("No notes fetched; generating synthetic corpus")
                report(15, "Generating synthetic notes...")
                notes = generate_synthetic_notes(self.settings.synthetic_note_count, self._rng)
                source = ExampleSource.PRETRAIN_SYNTHETIC

            report(20, "Labeling notes...")
            total = min(len(notes), self.settings.max_pretrain_notes) or 1
            examples = label_corpus(
                notes,
                source=source,
                max_notes=self.settings.max_pretrain_notes,
                progress=lambda n: report(20 + 30 * n / total, f"Labeled {n}/{total} notes..."),
            )
            report(50, f"Generated {len(examples)} training examples")

            self._store.extend(examples)
            self._save(StorageKey.TRAINING_DB, self._store.to_list())
            report(60, "Training model...")

            model = learning.pretrain(
                self._model,
                examples,
                rng=self._rng,
                on_epoch=lambda e, n: report(60 + 35 * e / n, f"Epoch {e}/{n}"),
            )

            self._model = model
            self._stats = Stats.from_examples(self._store)
            self._pretrained = True
            self._save(StorageKey.MODEL, model.to_dict())
            self._save(StorageKey.STATS, self._stats.to_dict())
            self._save_raw(StorageKey.PRETRAINED, "true")

        logger.info(
            "Pretraining completed",
            extra={
                "source": source,
                "notes": min(len(notes), self.settings.max_pretrain_notes),
                "examples": len(examples),
                "model_version": model.version,
            },
        )
        report(100, "Pre-training complete")
        return model

    # Export / reset

    def export_snapshot(self) -> Dict[str, Any]:
        """Returns a JSON-serializable snapshot of model, store and stats."""
        return {
            "model": self._model.to_dict() if self._model else None,
            "database": self._store.to_list(),
            "stats": self._stats.to_dict(),
            "export_date": datetime.now(timezone.utc).isoformat(),
        }

    def reset(self, confirm: bool = False) -> None:
        """Discards all learned state and reinstates the default model.

        Raises:
            ResetNotConfirmedError: Unless confirm is True
            TrainingInProgressError: If a training run is active
        """
        if not confirm:
            raise ResetNotConfirmedError("Reset requires explicit confirmation")

        with self._training():
            for key in (StorageKey.MODEL, StorageKey.TRAINING_DB, StorageKey.STATS, StorageKey.PRETRAINED):
                self._delete(key)

            self._model = create_default_model()
            self._store = ExampleStore()
            self._stats = Stats()
            self._pretrained = False
            self._save(StorageKey.MODEL, self._model.to_dict())

        logger.info("Service state reset to defaults")

    # Internals

    @contextmanager
    def _training(self) -> Iterator[None]:
        if not self._training_lock.acquire(blocking=False):
            raise TrainingInProgressError("A training run is already in progress")
        try:
            yield
        finally:
            self._training_lock.release()

    def _load_raw(self, key: str) -> Optional[str]:
        try:
            return self.storage.get(key)
        except PersistenceError:
            logger.warning("Storage read failed", exc_info=True, extra={"key": key})
            return None

    def _load(self, key: str) -> Optional[Any]:
        raw = self._load_raw(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Stored value is not valid JSON; ignoring", extra={"key": key})
            return None

    def _save_raw(self, key: str, value: str) -> None:
        try:
            self.storage.set(key, value)
        except PersistenceError:
            logger.error("Storage write failed", exc_info=True, extra={"key": key})

    def _save(self, key: str, value: Any) -> None:
        self._save_raw(key, json.dumps(value))

    def _delete(self, key: str) -> None:
        try:
            self.storage.delete(key)
        except PersistenceError:
            logger.error("Storage delete failed", exc_info=True, extra={"key": key})


def redact_note(text: str) -> DetectionResult:
    """Main entry point for single-note redaction.

    Args:
        text: Input text to redact

    Returns:
        DetectionResult with redacted text and metadata.
        On failure, returns a result indicating the error safely.
    """
    if not isinstance(text, str):
        logger.error(f"Invalid input type received: {type(text)}")
        return DetectionResult(
            original_text=str(text),
            redacted_text=str(text),
            metadata={"error": "Invalid input format"},
        )

    if not text:
        logger.warning("Empty text provided for redaction")
        return DetectionResult(
            original_text="",
            redacted_text="",
            metadata={"error": "Empty input provided"},
        )

    try:
        service = PHIDetectionService.get_instance()
        logger.info("Starting redaction request", extra={"text_length": len(text)})
        return service.detect(text)

    except (ConfigurationError, PipelineError) as e:
        # Known errors: log with context but hide internal details in response
        logger.error(
            f"Known error during redaction: {type(e).__name__}",
            exc_info=True,
            extra={"text_length": len(text)},
        )
        return DetectionResult(
            original_text=text,
            redacted_text=text,
            metadata={
                "error": "The redaction service encountered a processing error.",
                "status": "failed",
                "error_type": type(e).__name__,
            },
        )

    except Exception:
        # Catch-all for unexpected bugs
        logger.error(
            "Unexpected critical error in redaction pipeline",
            exc_info=True,
            extra={"text_length": len(text)},
        )
        return DetectionResult(
            original_text=text,
            redacted_text=text,
            metadata={
                "error": "An unexpected system error occurred.",
                "status": "failed",
            },
        )
