"""Visibility changes between two evaluations of the same form.

After an answer changes, the form surface needs to know which items appeared,
which disappeared, and which of the disappeared items still hold an answer.
Those answers stay in the draft; they are only excluded from scoring and
gating while their item is hidden.
"""

from __future__ import annotations

from typing import Callable, Iterable, Tuple


def compute_visibility_delta(
    pre_visible: Iterable[str],
    post_visible: Iterable[str],
    has_answer: Callable[[str], bool],
) -> Tuple[list[str], list[str], list[str]]:
    """Return `(now_visible, now_hidden, suppressed_answers)`.

    Lists keep the order in which the ids were given (template order when the
    caller passes evaluator output).
    """
    before = [str(x) for x in pre_visible if x]
    after = [str(x) for x in post_visible if x]
    before_set, after_set = set(before), set(after)

    now_visible = [qid for qid in after if qid not in before_set]
    now_hidden = [qid for qid in before if qid not in after_set]
    return now_visible, now_hidden, [qid for qid in now_hidden if has_answer(qid)]


__all__ = ["compute_visibility_delta"]
