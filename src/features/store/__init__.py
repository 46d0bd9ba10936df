"""JSON checkpoint store for harvested records.

This module provides persistent storage for:
- The ordered sequence of normalized records
- A single trailing checkpoint with the cursor to resume from
- Atomic whole-file rewrites so the store is never left torn
"""

from src.features.store.errors import (
    CheckpointStoreError,
    CorruptStoreError,
    ResumeIntegrityError,
    StoreClosedError,
    StoreNotFoundError,
    StorePersistenceError,
)
from src.features.store.io import AtomicWriter, json_default
from src.features.store.metrics import StoreMetrics
from src.features.store.models import Checkpoint, Record, ResumePoint, WriteResult
from src.features.store.store import CheckpointStore, read_store


__all__ = [
    # Store
    "CheckpointStore",
    "read_store",
    # Models
    "Checkpoint",
    "Record",
    "ResumePoint",
    "WriteResult",
    # I/O
    "AtomicWriter",
    "json_default",
    # Errors
    "CheckpointStoreError",
    "CorruptStoreError",
    "ResumeIntegrityError",
    "StoreClosedError",
    "StoreNotFoundError",
    "StorePersistenceError",
    # Metrics
    "StoreMetrics",
]
