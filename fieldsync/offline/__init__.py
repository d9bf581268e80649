"""Offline client: local drafts, field log, mutation queue and sync.

Every component receives its storage handle explicitly; `open_client()`
wires one local store per running instance from configuration.
"""

from __future__ import annotations

from typing import Optional

from fieldsync.config import AppConfig
from fieldsync.db.base import create_store_engine
from fieldsync.offline.connectivity import ConnectivityMonitor
from fieldsync.offline.drafts import DraftStore
from fieldsync.offline.field_log import FieldLog
from fieldsync.offline.local_store import (
    LocalStore,
    StorageError,
    StorageQuotaExceeded,
    StorageUnavailable,
)
from fieldsync.offline.mutation_queue import MutationQueue
from fieldsync.offline.sender import HttpMutationSender, MutationSender, MutationSendError
from fieldsync.offline.sync_coordinator import AnswerOutcome, SubmissionBlocked, SyncCoordinator


def open_client(
    cfg: AppConfig,
    *,
    sender: Optional[MutationSender] = None,
    connectivity: Optional[ConnectivityMonitor] = None,
) -> SyncCoordinator:
    """Build a SyncCoordinator over the configured local store and write API."""
    store = LocalStore(create_store_engine(cfg.local_store.url), max_bytes=cfg.local_store.max_bytes)
    queue = MutationQueue(
        store,
        max_attempts=cfg.sync.max_attempts,
        backoff_base_seconds=cfg.sync.backoff_base_seconds,
        backoff_max_seconds=cfg.sync.backoff_max_seconds,
    )
    if sender is None:
        sender = HttpMutationSender(cfg.sync.api_base_url, timeout_seconds=cfg.sync.request_timeout_seconds)
    return SyncCoordinator(
        DraftStore(store),
        queue,
        sender,
        FieldLog(store),
        connectivity=connectivity or ConnectivityMonitor(),
    )


__all__ = [
    "AnswerOutcome",
    "ConnectivityMonitor",
    "DraftStore",
    "FieldLog",
    "HttpMutationSender",
    "LocalStore",
    "MutationQueue",
    "MutationSendError",
    "MutationSender",
    "StorageError",
    "StorageQuotaExceeded",
    "StorageUnavailable",
    "SubmissionBlocked",
    "SyncCoordinator",
    "open_client",
]
