"""Centralised construction of problem+json payloads.

Route modules raise `HTTPException(detail=<problem dict>)` using these
helpers so titles and codes are not scattered as string literals.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def _problem(status: int, title: str, detail: str, code: str, errors: Optional[list] = None) -> Dict[str, object]:
    problem: Dict[str, object] = {"title": title, "status": status, "detail": detail, "code": code}
    if errors:
        problem["errors"] = errors
    logger.info("problem_emitted status=%s code=%s", status, code)
    return problem


def problem_claim_unavailable(task_id: str) -> Dict[str, object]:
    """Return a 503 problem for claim storage failures (not a conflict)."""
    return _problem(503, "Service Unavailable", f"claim storage unavailable for task {task_id}", "CLAIM_UNAVAILABLE")


def problem_template_invalid(detail: str, errors: Optional[list] = None) -> Dict[str, object]:
    return _problem(422, "Invalid Template", detail, "TEMPLATE_INVALID", errors)


def problem_mutation_rejected(detail: str, errors: Optional[list] = None) -> Dict[str, object]:
    return _problem(422, "Unprocessable Mutation", detail, "MUTATION_REJECTED", errors)


__all__ = [
    "problem_claim_unavailable",
    "problem_template_invalid",
    "problem_mutation_rejected",
]
