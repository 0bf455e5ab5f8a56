"""
Restore status monitoring.

Polls every manifest entry until S3 reports a readable copy. Glacier restores
routinely take hours, so rounds are spaced by a randomized sleep of tens of
minutes. There is no overall timeout unless the caller supplies a deadline;
a cancellation event lets the caller stop the loop between rounds or in the
middle of a sleep.
"""
from __future__ import annotations

import logging
import random
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from .errors import MonitorDeadlineExceeded, RestoreCancelled, StorageError
from .manifest import ManifestEntry, read_manifest
from .storage.base import ObjectHead, ObjectStore

__all__ = ["ObjectRestoreState", "StatusMonitor", "classify", "remove_directories"]

logger = logging.getLogger(__name__)

HOT_STORAGE_CLASSES = {"STANDARD"}
RESTORE_DONE_MARKER = 'ongoing-request="false"'
RESTORE_ONGOING_MARKER = 'ongoing-request="true"'


class ObjectRestoreState(str, Enum):
    """Where an object is on its way back from the archive tier."""
    COLD = "cold"
    THAWING = "thawing"
    AVAILABLE = "available"


def classify(head: ObjectHead) -> ObjectRestoreState:
    """
    Classify an object from its head metadata.

    Available when S3 reports no storage class or STANDARD, or when the
    restore header says the restore request is no longer ongoing.
    """
    if not head.storage_class or head.storage_class.upper() in HOT_STORAGE_CLASSES:
        return ObjectRestoreState.AVAILABLE
    if head.restore:
        if RESTORE_DONE_MARKER in head.restore:
            return ObjectRestoreState.AVAILABLE
        if RESTORE_ONGOING_MARKER in head.restore:
            return ObjectRestoreState.THAWING
    return ObjectRestoreState.COLD


def remove_directories(entries: Sequence[ManifestEntry]) -> List[ManifestEntry]:
    """Drop folder placeholder keys; only discrete objects are monitored."""
    kept = []
    for entry in entries:
        if entry.is_directory:
            logger.info(f"Ignoring directory {entry}")
        else:
            kept.append(entry)
    return kept


class StatusMonitor:
    """
    Waits until every manifest object is readable.

    Args:
        store: Object store used for head requests
        min_minutes: Lower bound of the sleep between rounds
        max_minutes: Exclusive upper bound of the sleep between rounds
        cancel: Event that aborts the wait when set
        deadline_s: Optional overall budget in seconds (None = wait forever)
        rng: Random source for the sleep duration
        sleep: Sleep function; defaults to waiting on the cancel event
        clock: Monotonic clock used for the deadline
    """

    def __init__(self, store: ObjectStore, *,
                 min_minutes: int = 15,
                 max_minutes: int = 45,
                 cancel: Optional[threading.Event] = None,
                 deadline_s: Optional[float] = None,
                 rng: Optional[random.Random] = None,
                 sleep: Optional[Callable[[float], None]] = None,
                 clock: Callable[[], float] = time.monotonic) -> None:
        if max_minutes <= min_minutes:
            raise ValueError("max_minutes must be greater than min_minutes")
        self._store = store
        self._min_minutes = min_minutes
        self._max_minutes = max_minutes
        self._cancel = cancel or threading.Event()
        self._deadline_s = deadline_s
        self._rng = rng or random.Random()
        self._sleep = sleep or self._cancel.wait
        self._clock = clock
        self.rounds = 0
        self.sleeps = 0

    def cancel(self) -> None:
        """Stop waiting: wakes the default sleep and fails the next round check."""
        self._cancel.set()

    def next_sleep_seconds(self) -> int:
        """Whole minutes drawn uniformly from [min_minutes, max_minutes), in seconds."""
        return self._rng.randrange(self._min_minutes, self._max_minutes) * 60

    def check(self, entries: Sequence[ManifestEntry]) -> Dict[ManifestEntry, ObjectRestoreState]:
        """
        Run one round of head requests.

        Entries whose metadata cannot be fetched are reported as COLD so they
        stay pending for the next round.
        """
        states: Dict[ManifestEntry, ObjectRestoreState] = {}
        for entry in entries:
            try:
                head = self._store.head_object(entry.bucket, entry.key)
            except StorageError as e:
                logger.warning(f"Error checking restore status for {entry}: {e}")
                states[entry] = ObjectRestoreState.COLD
                continue
            state = classify(head)
            if state is ObjectRestoreState.AVAILABLE:
                logger.info(f"Object {entry} has been restored")
            states[entry] = state
        return states

    def wait_for_entries(self, entries: Sequence[ManifestEntry]) -> List[ManifestEntry]:
        """
        Block until every entry is available.

        Returns:
            The entries without directory placeholders

        Raises:
            RestoreCancelled: If the cancel event is set
            MonitorDeadlineExceeded: If the deadline passes with entries pending
        """
        keys = remove_directories(entries)
        logger.info(f"Monitoring {len(keys)} objects")

        started = self._clock()
        pending = list(keys)
        while pending:
            self._check_cancel(len(pending))
            self.rounds += 1
            states = self.check(pending)
            pending = [e for e in pending if states[e] is not ObjectRestoreState.AVAILABLE]
            if not pending:
                break

            self._check_deadline(started, len(pending))
            wait_s = self.next_sleep_seconds()
            if self._deadline_s is not None:
                remaining = self._deadline_s - (self._clock() - started)
                wait_s = min(wait_s, max(int(remaining), 0))
            thawing = sum(1 for e in pending if states[e] is ObjectRestoreState.THAWING)
            logger.info(f"{len(pending)} objects still restoring ({thawing} thawing). "
                        f"Waiting {wait_s // 60} minutes before next check")
            logger.debug(f"Remaining keys: {[str(e) for e in pending]}")
            self.sleeps += 1
            self._sleep(wait_s)

        logger.info("All objects restored successfully")
        return keys

    def wait_for_manifest(self, manifest_path: Union[str, Path]) -> List[ManifestEntry]:
        """Read the manifest file and wait for every entry in it."""
        return self.wait_for_entries(read_manifest(manifest_path))

    def _check_cancel(self, pending: int) -> None:
        if self._cancel.is_set():
            raise RestoreCancelled(f"restore monitoring cancelled with {pending} objects pending")

    def _check_deadline(self, started: float, pending: int) -> None:
        if self._deadline_s is None:
            return
        if self._clock() - started >= self._deadline_s:
            raise MonitorDeadlineExceeded(
                f"{pending} objects still restoring after {self._deadline_s:.0f}s",
                pending=pending,
            )
