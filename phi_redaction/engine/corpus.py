# phi_redaction/engine/corpus.py

"""Pretraining corpora: remote dataset rows with a synthetic fallback."""

import json
import logging
import random
from typing import Any, Callable, List, Mapping, Optional, Sequence

import requests

from phi_redaction.core.loader import PatternLoader

logger = logging.getLogger(__name__)

NOTE_FIELDS = ("text", "content", "note")

ProgressCallback = Callable[[int, int], None]


def _note_text(row: Any) -> Optional[str]:
    if isinstance(row, str):
        return row
    if isinstance(row, Mapping):
        for key in NOTE_FIELDS:
            value = row.get(key)
            if isinstance(value, str) and value:
                return value
        return json.dumps(row)
    return None


def fetch_corpus(
    sources: Sequence[str],
    timeout: float = 10.0,
    progress: Optional[ProgressCallback] = None,
) -> List[str]:
    """Fetches note texts from dataset-server style endpoints.

    Each source is expected to return JSON with a 'rows' list whose items
    carry a 'row' object. Failing sources are logged and skipped.

    Args:
        sources: Endpoint URLs
        timeout: Per-request timeout in seconds
        progress: Called with (completed_sources, total_sources)

    Returns:
        Note texts from every source that answered, possibly empty
    """
    notes: List[str] = []

    for i, url in enumerate(sources):
        try:
            response = requests.get(url, timeout=timeout)
            if response.ok:
                data = response.json()
                rows = data.get("rows") if isinstance(data, dict) else None
                if not isinstance(rows, list):
                    rows = []
                fetched = [_note_text(r.get("row") if isinstance(r, dict) else r) for r in rows]
                fetched = [n for n in fetched if n]
                notes.extend(fetched)
                logger.info(
                    "Fetched pretraining notes",
                    extra={"source": url, "notes": len(fetched)},
                )
            else:
                logger.warning(
                    f"Dataset fetch returned HTTP {response.status_code}",
                    extra={"source": url},
                )
        except requests.exceptions.Timeout:
            logger.warning(f"Dataset fetch timed out after {timeout}s", extra={"source": url})
        except requests.exceptions.RequestException as e:
            logger.warning(f"Dataset fetch failed: {e}", extra={"source": url})
        except ValueError as e:
            logger.warning(f"Dataset response was not valid JSON: {e}", extra={"source": url})
        except (TypeError, AttributeError) as e:
            logger.warning(f"Dataset response had an unexpected shape: {e}", extra={"source": url})

        if progress is not None:
            progress(i + 1, len(sources))

    return notes


def generate_synthetic_notes(count: int, rng: Optional[random.Random] = None) -> List[str]:
    """Generates template-filled clinical notes with plausible PHI.

    Args:
        count: Number of notes
        rng: Random source; a seeded instance makes the output reproducible
    """
    rng = rng or random.Random()
    loader = PatternLoader.get_instance()
    first_names = loader.get_synthetic("first_names")
    last_names = loader.get_synthetic("last_names")
    states = loader.get_synthetic("states")
    cities = loader.get_synthetic("cities")
    conditions = loader.get_synthetic("conditions")
    templates = loader.get_synthetic("templates")

    notes = []
    for _ in range(count):
        date = f"{rng.randint(1, 12):02d}/{rng.randint(1, 28):02d}/{rng.randint(2020, 2023)}"
        phone = f"({rng.randint(100, 999)}) {rng.randint(100, 999)}-{rng.randint(1000, 9999)}"
        values = {
            "first": rng.choice(first_names),
            "last": rng.choice(last_names),
            "doctor_first": rng.choice(first_names),
            "doctor_last": rng.choice(last_names),
            "state": rng.choice(states),
            "city": rng.choice(cities),
            "condition": rng.choice(conditions),
            "date": date,
            "phone": phone,
            "mrn": f"MR{rng.randint(100000, 999999)}",
        }
        notes.append(rng.choice(templates).format(**values))

    logger.debug(f"Generated {len(notes)} synthetic clinical notes")
    return notes
