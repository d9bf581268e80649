"""Replay token handling for the mutation receiver.

Routes call these helpers and never reference header names directly. The
client's `Idempotency-Key` is the mutation id; when it is absent the write is
still applied, under a server-generated id that the caller cannot replay.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Request, Response

_TOKEN_HEADER = "Idempotency-Key"
_REPLAYED_HEADER = "Idempotency-Replayed"


def get_replay_token(request: Request) -> Optional[str]:
    """Return the normalised client replay token, or None."""
    token = request.headers.get(_TOKEN_HEADER)
    if isinstance(token, str):
        token = token.strip()
        if token:
            return token
    return None


def resolve_mutation_id(request: Request) -> str:
    return get_replay_token(request) or str(uuid.uuid4())


def mark_replayed(response: Response) -> None:
    response.headers[_REPLAYED_HEADER] = "true"


__all__ = ["get_replay_token", "resolve_mutation_id", "mark_replayed"]
