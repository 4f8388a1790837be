# phi_redaction/engine/detector.py

"""Detection and offset-safe redaction over the linear model."""

import logging
import time
from dataclasses import replace
from typing import List, Optional, Sequence

from phi_redaction.core.domain import BatchResult, Detection, DetectionResult, Model
from phi_redaction.engine.features import extract_features
from phi_redaction.engine.scoring import assign_category, is_phi, score
from phi_redaction.engine.tokenizer import (
    context_window,
    has_alphanumeric,
    merge_shape_spans,
    tokenize,
)

logger = logging.getLogger(__name__)


def detect(text: str, model: Optional[Model]) -> DetectionResult:
    """Scores every word-bearing token and redacts the positives.

    Args:
        text: Raw clinical note
        model: Current model; None yields no detections

    Returns:
        DetectionResult with detections in document order
    """
    if model is None:
        logger.warning("Detection requested without a model")
        return DetectionResult(
            original_text=text,
            redacted_text=text,
            metadata={"model_version": None},
        )

    start = time.perf_counter()
    tokens = merge_shape_spans(text, tokenize(text))
    detections: List[Detection] = []

    for i, token in enumerate(tokens):
        if not has_alphanumeric(token.text):
            continue

        before, after = context_window(tokens, i)
        features = extract_features(token.text, before, after)
        value = score(features, model.weights)
        if not is_phi(value):
            continue

        detections.append(
            Detection(
                category=assign_category(features),
                value=token.text,
                score=value,
                features=features,
                before_context=before,
                after_context=after,
                index=token.start,
            )
        )

    redacted = redact(text, detections)
    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    logger.info(
        "Detection completed",
        extra={
            "text_length": len(text),
            "tokens": len(tokens),
            "detections": len(detections),
            "model_version": model.version,
            "duration_ms": duration_ms,
        },
    )

    return DetectionResult(
        original_text=text,
        redacted_text=redacted,
        detections=detections,
        metadata={
            "model_version": model.version,
            "token_count": len(tokens),
            "duration_ms": duration_ms,
        },
    )


def redact(text: str, detections: Sequence[Detection]) -> str:
    """Replaces each detection with its placeholder.

    Detections are applied left to right; a running offset tracks how far
    earlier replacements have shifted later positions.

    Raises:
        ValueError: If detections are out of order, overlap or do not match
            the text at their index.
    """
    result = text
    offset = 0
    previous_end = 0

    for detection in detections:
        if detection.index < previous_end:
            raise ValueError(
                f"Detection at {detection.index} overlaps or precedes the one ending at {previous_end}"
            )
        if text[detection.index : detection.end] != detection.value:
            raise ValueError(f"Detection value {detection.value!r} not found at {detection.index}")

        start = detection.index + offset
        placeholder = detection.placeholder
        result = result[:start] + placeholder + result[start + len(detection.value) :]
        offset += len(placeholder) - len(detection.value)
        previous_end = detection.end

    return result


def detect_batch(texts: Sequence[str], model: Optional[Model]) -> BatchResult:
    """Runs detect over each document and tags detections with note_index."""
    results: List[DetectionResult] = []
    total = 0

    for note_index, text in enumerate(texts):
        result = detect(text, model)
        result.detections = [replace(d, note_index=note_index) for d in result.detections]
        total += len(result.detections)
        results.append(result)

    logger.info("Batch detection completed", extra={"notes": len(texts), "total_phi": total})
    return BatchResult(results=results, total_phi=total)
