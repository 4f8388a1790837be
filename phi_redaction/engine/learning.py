# phi_redaction/engine/learning.py

"""Online weight updates for the linear model.

Both procedures copy the weights, run their epochs to completion and return
a new Model with the version bumped by one. The input Model is never
modified. Shuffling draws from the injected random source, so a seeded
`random.Random` makes a run reproducible.
"""

import logging
import random
import time
from dataclasses import replace
from typing import Callable, Dict, Optional, Sequence

from phi_redaction.core.definitions import (
    PRETRAIN_EPOCHS,
    PRETRAIN_INITIAL_RATE,
    PRETRAIN_RATE_DECAY,
    RETRAIN_EPOCHS,
)
from phi_redaction.core.domain import Model, TrainingExample
from phi_redaction.engine.scoring import clamp_weight, predict

logger = logging.getLogger(__name__)

EpochCallback = Callable[[int, int], None]


def _next_version(model: Model, weights: Dict[str, float], **changes) -> Model:
    return replace(
        model,
        weights=weights,
        version=model.version + 1,
        last_trained=max(model.last_trained, time.time()),
        **changes,
    )


def retrain(
    model: Optional[Model],
    examples: Sequence[TrainingExample],
    rng: Optional[random.Random] = None,
    epochs: int = RETRAIN_EPOCHS,
) -> Optional[Model]:
    """Supervised batch retraining over the whole training store.

    Perceptron-style: each misclassified example moves the weights of its
    nonzero features by learning_rate * error * value.

    Args:
        model: Current model; None makes this a no-op
        examples: Every example in the training store
        rng: Shuffle source
        epochs: Passes over the examples

    Returns:
        The new model, or the input unchanged when there is nothing to train
    """
    if model is None:
        logger.warning("Retrain requested without a model")
        return None
    if not examples:
        logger.debug("Retrain skipped: training store is empty")
        return model

    rng = rng or random.Random()
    weights = dict(model.weights)
    rate = model.learning_rate
    start = time.perf_counter()

    for _ in range(epochs):
        shuffled = list(examples)
        rng.shuffle(shuffled)

        for example in shuffled:
            actual = 1 if example.is_phi else 0
            error = actual - predict(example.features, weights)
            if error == 0:
                continue
            for name, value in example.features.nonzero():
                weights[name] = clamp_weight(weights.get(name, 0.0) + rate * error * value)

    updated = _next_version(model, weights)
    logger.info(
        "Retrain completed",
        extra={
            "version": updated.version,
            "examples": len(examples),
            "epochs": epochs,
            "duration_ms": round((time.perf_counter() - start) * 1000, 2),
        },
    )
    return updated


def pretrain(
    model: Optional[Model],
    examples: Sequence[TrainingExample],
    rng: Optional[random.Random] = None,
    epochs: int = PRETRAIN_EPOCHS,
    initial_rate: float = PRETRAIN_INITIAL_RATE,
    decay: float = PRETRAIN_RATE_DECAY,
    on_epoch: Optional[EpochCallback] = None,
) -> Optional[Model]:
    """Reward-shaped pretraining over weakly labeled examples.

    The rate decays geometrically (initial_rate * decay ** epoch). Each
    example earns reward +confidence when predicted correctly and
    -confidence otherwise, and every nonzero feature is updated by
    rate * reward * (actual - predicted) * value.

    Args:
        model: Current model; None makes this a no-op
        examples: Pretraining examples
        rng: Shuffle source
        epochs: Passes over the examples
        initial_rate: Learning rate of the first epoch
        decay: Per-epoch rate multiplier
        on_epoch: Called with (completed_epochs, epochs) after each epoch

    Returns:
        The new model, marked pretrained
    """
    if model is None:
        logger.warning("Pretrain requested without a model")
        return None

    rng = rng or random.Random()
    weights = dict(model.weights)

    for epoch in range(epochs):
        rate = initial_rate * decay**epoch
        shuffled = list(examples)
        rng.shuffle(shuffled)
        epoch_reward = 0.0

        for example in shuffled:
            actual = 1 if example.is_phi else 0
            predicted = predict(example.features, weights)
            confidence = example.confidence or 1.0

            if predicted == actual:
                reward = confidence
                epoch_reward += reward
            else:
                reward = -confidence

            gradient_sign = actual - predicted
            if gradient_sign == 0:
                continue
            for name, value in example.features.nonzero():
                weights[name] = clamp_weight(
                    weights.get(name, 0.0) + rate * reward * gradient_sign * value
                )

        avg_reward = epoch_reward / len(shuffled) if shuffled else 0.0
        logger.info(
            f"Epoch {epoch + 1}: Avg Reward = {avg_reward:.3f}, LR = {rate:.4f}",
            extra={"epoch": epoch + 1, "avg_reward": avg_reward, "learning_rate": rate},
        )
        if on_epoch is not None:
            on_epoch(epoch + 1, epochs)

    return _next_version(
        model, weights, pretrained=True, pretraining_examples=len(examples)
    )
