# phi_redaction/engine/tokenizer.py

"""Word-boundary tokenizer with offset tracking and context windows."""

import re
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from phi_redaction.core.definitions import CONTEXT_TOKENS
from phi_redaction.core.domain import Token
from phi_redaction.logic.shapes import span_patterns

# Maximal runs of word or non-word characters (equivalent to splitting on \b)
_RUN_PATTERN = re.compile(r"\w+|\W+")
_ALNUM_PATTERN = re.compile(r"[A-Za-z0-9]")


def tokenize(text: str) -> List[Token]:
    """Splits text into alternating word / separator tokens.

    Concatenating the token texts in order reproduces the input exactly.
    """
    return [Token(m.group(), m.start()) for m in _RUN_PATTERN.finditer(text)]


def merge_shape_spans(
    text: str,
    tokens: Sequence[Token],
    patterns: Optional[Iterable[Pattern]] = None,
) -> List[Token]:
    """Collapses tokens covered by a shape span into a single token.

    A span such as '(555) 123-4567' crosses several word boundaries. Every
    non-overlapping span match becomes one token; tokens straddling a span
    edge are split at that edge. The result is still lossless.

    Args:
        text: Source text the tokens were produced from
        tokens: Output of tokenize(text)
        patterns: Span patterns to apply (defaults to the shape registry)
    """
    if not tokens:
        return []

    spans = _select_spans(text, patterns if patterns is not None else span_patterns())
    if not spans:
        return list(tokens)

    cuts = {0, len(text)}
    cuts.update(t.start for t in tokens)
    for start, end in spans:
        cuts.add(start)
        cuts.add(end)
    cuts = sorted(c for c in cuts if not any(s < c < e for s, e in spans))

    return [Token(text[a:b], a) for a, b in zip(cuts, cuts[1:])]


def _select_spans(text: str, patterns: Iterable[Pattern]) -> List[Tuple[int, int]]:
    """Returns non-overlapping span matches, preferring earlier then longer ones."""
    candidates = []
    for pattern in patterns:
        for m in pattern.finditer(text):
            if m.end() > m.start():
                candidates.append((m.start(), m.end()))

    taken: List[Tuple[int, int]] = []
    for start, end in sorted(candidates, key=lambda s: (s[0], -(s[1] - s[0]))):
        if not any(start < e and end > s for s, e in taken):
            taken.append((start, end))
    return sorted(taken)


def context_window(
    tokens: Sequence[Token], index: int, size: int = CONTEXT_TOKENS
) -> Tuple[str, str]:
    """Returns the text of up to `size` tokens before and after tokens[index]."""
    before = "".join(t.text for t in tokens[max(0, index - size) : index])
    after = "".join(t.text for t in tokens[index + 1 : index + 1 + size])
    return before, after


def has_alphanumeric(word: str) -> bool:
    return bool(_ALNUM_PATTERN.search(word))
