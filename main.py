# main.py

"""Streamlit web UI for the learning PHI redactor.

Submit clinical notes one at a time or as a queued batch, review each
detection and mark it correct or incorrect. Feedback retrains the model
immediately.
"""

import json
import logging
from typing import MutableMapping, Optional, Tuple

import streamlit as st

from phi_redaction.core.domain import Detection
from phi_redaction.core.exceptions import (
    PHIRedactionError,
    ResetNotConfirmedError,
    TrainingInProgressError,
)
from phi_redaction.engine.scoring import weights_summary
from phi_redaction.logging_config import configure_logging
from phi_redaction.service.config import settings
from phi_redaction.service.pipeline import PHIDetectionService

logger = logging.getLogger(__name__)


def _get_service() -> PHIDetectionService:
    with st.spinner("Loading model (first start pre-trains on medical notes)..."):
        return PHIDetectionService.get_instance()


def _init_state() -> None:
    defaults = {
        "queue": [],
        "result": None,
        "batch": None,
        "feedback": {},
    }
    for key, value in defaults.items():
        st.session_state.setdefault(key, value)


def _submit_feedback(
    service: PHIDetectionService, detection: Detection, is_correct: bool
) -> Tuple[Optional[str], str, str]:
    """Records feedback and returns (feedback tag or None, notice level, notice text)."""
    try:
        stats = service.provide_feedback(detection, is_correct=is_correct)
    except TrainingInProgressError:
        return (
            None,
            "warning",
            "Training is running; feedback was stored and will apply on the next run.",
        )
    return (
        detection.with_feedback(is_correct).feedback,
        "success",
        f"Model updated. {stats.total} training examples.",
    )


def _pop_notice(state: MutableMapping) -> Optional[Tuple[str, str]]:
    """Removes and returns the notice queued before the last rerun."""
    return state.pop("notice", None)


def _render_detections(service: PHIDetectionService, detections, key_prefix: str) -> None:
    """Lists detections with feedback buttons."""
    if not detections:
        st.info("No PHI detected.")
        return

    for i, detection in enumerate(detections):
        key = f"{key_prefix}_{i}"
        judged = st.session_state.feedback.get(key)

        cols = st.columns([4, 2, 1, 1])
        cols[0].markdown(
            f"**{detection.value}** `{detection.category}` "
            f"<span style='color:gray'>…{detection.before_context[-30:]}</span>",
            unsafe_allow_html=True,
        )
        cols[1].caption(f"score {detection.score:.2f}")

        if judged is not None:
            cols[2].write("✅" if judged == "correct" else "❌")
            continue

        correct = cols[2].button("✓", key=f"{key}_ok", help="Correctly identified as PHI")
        incorrect = cols[3].button("✗", key=f"{key}_bad", help="Not PHI")
        if correct or incorrect:
            tag, level, message = _submit_feedback(service, detection, is_correct=correct)
            if tag is not None:
                st.session_state.feedback[key] = tag
            # Shown by main() after the rerun
            st.session_state.notice = (level, message)
            st.rerun()


def _single_mode(service: PHIDetectionService) -> None:
    col1, col2 = st.columns(2)

    with col1:
        st.subheader("Clinical Note")
        text_input = st.text_area(
            "Source Document",
            height=300,
            placeholder="Paste clinical note text here...",
        )
        if st.button("Detect PHI", type="primary"):
            if not text_input or not text_input.strip():
                st.warning("Please enter text to process.")
                logger.warning("Detection attempted with empty input")
            else:
                st.session_state.result = service.detect(text_input)
                st.session_state.feedback = {}

    with col2:
        st.subheader("Redacted Output")
        result = st.session_state.result
        if result is not None:
            st.text_area("Redacted Document", value=result.redacted_text, height=300)
            st.success(f"Found {len(result.detections)} PHI tokens.")

    if st.session_state.result is not None:
        st.subheader("Review Detections")
        _render_detections(service, st.session_state.result.detections, "single")


def _batch_mode(service: PHIDetectionService) -> None:
    st.subheader("Note Queue")
    note = st.text_area("Add a note to the queue", height=150, key="queue_input")

    col1, col2, col3 = st.columns(3)
    if col1.button("Add to queue") and note.strip():
        st.session_state.queue.append(note)
    if col2.button("Clear queue"):
        st.session_state.queue = []
        st.session_state.batch = None
    if col3.button("Process batch", type="primary", disabled=not st.session_state.queue):
        st.session_state.batch = service.detect_batch(st.session_state.queue)
        st.session_state.feedback = {}

    st.caption(f"{len(st.session_state.queue)} notes queued")

    batch = st.session_state.batch
    if batch is not None:
        st.success(f"Processed {len(batch.results)} notes, {batch.total_phi} PHI tokens found.")
        for n, result in enumerate(batch.results):
            with st.expander(f"Note {n + 1}: {len(result.detections)} detections"):
                st.code(result.redacted_text, language=None)
                _render_detections(service, result.detections, f"batch{n}")


def _sidebar(service: PHIDetectionService) -> None:
    with st.sidebar:
        st.header("Model")
        model = service.model
        stats = service.stats
        if model is not None:
            st.metric("Version", model.version)
            st.caption("Pre-trained" if model.pretrained else "Default weights")

        c1, c2 = st.columns(2)
        c1.metric("PHI labels", stats.correct)
        c2.metric("Not-PHI labels", stats.incorrect)
        st.metric("Training examples", stats.total, help=f"{stats.accuracy}% labeled PHI")

        if st.button("Pre-train on medical notes", disabled=service.is_training):
            bar = st.progress(0, text="Starting...")
            try:
                service.pretrain(progress=lambda pct, msg: bar.progress(min(int(pct), 100), text=msg))
                st.success("Pre-training complete.")
            except TrainingInProgressError:
                st.warning("A training run is already in progress.")
            except PHIRedactionError:
                st.error("Pre-training failed.")
                logger.error("Pre-training failed from UI", exc_info=True)

        with st.expander("Feature weights"):
            st.json(weights_summary(model))

        st.download_button(
            "Export model & data",
            data=json.dumps(service.export_snapshot(), indent=2),
            file_name="phi_model_export.json",
            mime="application/json",
        )

        st.header("Reset")
        confirm = st.checkbox("I understand this discards all learned data")
        if st.button("Reset model"):
            try:
                service.reset(confirm=confirm)
                st.session_state.result = None
                st.session_state.batch = None
                st.session_state.feedback = {}
                st.success("Model reset to defaults.")
            except ResetNotConfirmedError:
                st.warning("Tick the confirmation box to reset.")
            except TrainingInProgressError:
                st.warning("Cannot reset while training is running.")


def main():
    """Run the Streamlit application UI."""
    configure_logging(settings.log_level)
    st.set_page_config(layout="wide", page_title="Learning PHI Redactor", page_icon="🛡️")

    st.title("Learning PHI Redactor")
    st.markdown(
        "Context-aware detection of protected health information that learns from your feedback."
    )
    st.markdown("---")

    _init_state()

    notice = _pop_notice(st.session_state)
    if notice is not None:
        level, message = notice
        (st.warning if level == "warning" else st.success)(message)

    try:
        service = _get_service()
    except PHIRedactionError:
        st.error("The detection service could not be started.")
        logger.error("Service startup failed", exc_info=True)
        return

    mode = st.radio("Mode", ["Single note", "Batch"], horizontal=True)
    try:
        if mode == "Single note":
            _single_mode(service)
        else:
            _batch_mode(service)
    except Exception:
        st.error("An unexpected error occurred during detection.")
        logger.error("Unexpected error in main application loop", exc_info=True)

    _sidebar(service)


if __name__ == "__main__":
    main()
