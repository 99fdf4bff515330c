"""Answer matching for trivia-style (``RANDOM_CORRECT``) draws."""

from __future__ import annotations

import unicodedata

from ..models import AnswerMatch


def normalize_answer(value: str) -> str:
    """Fold ``value`` to lower-case letters and digits without accents."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(
        ch.lower()
        for ch in decomposed
        if not unicodedata.combining(ch) and ch.isalnum()
    )


def evaluate_correctness(
    comment_text: str,
    correct_answer: str,
    answer_match: str = AnswerMatch.NORMALIZED_EXACT.value,
) -> bool:
    """Return whether ``comment_text`` answers ``correct_answer``.

    An empty ``correct_answer`` accepts every comment.
    """
    if not correct_answer:
        return True
    if answer_match == AnswerMatch.EXACT.value:
        return comment_text.strip().lower() == correct_answer.strip().lower()
    if answer_match == AnswerMatch.CONTAINS.value:
        return correct_answer.lower() in comment_text.lower()
    return normalize_answer(comment_text) == normalize_answer(correct_answer)


__all__ = ["evaluate_correctness", "normalize_answer"]
