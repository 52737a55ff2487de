"""Sync status propagation.

Items converge with a remote store through a small state machine:

    pending -> syncing -> synced | error
    error -> pending (retry)

``rejected``, ``ignored`` and ``hidden`` are set by policy and can be
entered from any state. The remote side is represented by a
``SyncTransport``, which eventually reports an outcome for each submitted
item. Timers come from a ``SyncScheduler`` so tests can drive time by hand.
"""

import heapq
import itertools
import logging
import random
import threading
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Callable
from typing import Optional

from pydantic import BaseModel, Field

from engine.item import SyncStatus
from engine.tree import TreeBuilder, TreeSnapshot

logger = logging.getLogger(__name__)

UNSYNCED_STATUSES = frozenset({SyncStatus.PENDING, SyncStatus.ERROR})
POLICY_STATUSES = frozenset({SyncStatus.REJECTED, SyncStatus.IGNORED, SyncStatus.HIDDEN})

_TRANSITIONS: dict[SyncStatus, frozenset[SyncStatus]] = {
    SyncStatus.PENDING: frozenset({SyncStatus.SYNCING}),
    SyncStatus.SYNCING: frozenset({SyncStatus.SYNCED, SyncStatus.ERROR}),
    SyncStatus.SYNCED: frozenset({SyncStatus.PENDING}),
    SyncStatus.ERROR: frozenset({SyncStatus.PENDING, SyncStatus.SYNCING}),
    SyncStatus.REJECTED: frozenset({SyncStatus.PENDING}),
    SyncStatus.IGNORED: frozenset({SyncStatus.PENDING}),
    SyncStatus.HIDDEN: frozenset({SyncStatus.PENDING}),
}


def is_valid_transition(old: Optional[SyncStatus], new: SyncStatus) -> bool:
    """Check whether moving from ``old`` to ``new`` follows the state machine."""
    if old is None or old == new or new in POLICY_STATUSES:
        return True
    return new in _TRANSITIONS[old]


# ===== Pure tree helpers =====


def update_sync_statuses(
    tree: TreeSnapshot, item_ids: list[str], status: SyncStatus
) -> TreeSnapshot:
    """Stamp ``status`` on several items in one new snapshot.

    Unknown ids and items already in ``status`` are ignored. Returns the same
    snapshot when nothing changed.
    """
    builder: Optional[TreeBuilder] = None
    for item_id in item_ids:
        record = tree.get(item_id)
        if record is None or record.sync_status == status:
            continue
        if not is_valid_transition(record.sync_status, status):
            logger.debug(
                f"Unusual sync transition for '{item_id}': "
                f"{record.sync_status} -> {status.value}"
            )
        if builder is None:
            builder = TreeBuilder(tree)
        builder.replace(record.model_copy(update={"sync_status": status}))
    return tree if builder is None else builder.build()


def update_sync_status(
    tree: TreeSnapshot, item_id: str, status: SyncStatus
) -> TreeSnapshot:
    """Stamp ``status`` on one item. Unknown ids leave the snapshot unchanged."""
    return update_sync_statuses(tree, [item_id], status)


def find_unsynced(tree: TreeSnapshot) -> list[str]:
    """Ids of every ``pending`` or ``error`` item, depth-first."""
    return [record.id for record in tree.walk() if record.sync_status in UNSYNCED_STATUSES]


def aggregate_status(tree: TreeSnapshot, folder_id: str) -> Optional[SyncStatus]:
    """Roll the statuses of a folder's subtree up into one display status.

    ``error`` wins over ``syncing``, which wins over ``pending``. A subtree
    whose tracked items are all settled reads as ``synced``. Returns the
    folder's own status when nothing in the subtree is tracked.
    """
    record = tree.require(folder_id)
    statuses = {
        node.sync_status for node in tree.walk(folder_id) if node.sync_status is not None
    }
    if record.sync_status is not None:
        statuses.add(record.sync_status)
    for status in (SyncStatus.ERROR, SyncStatus.SYNCING, SyncStatus.PENDING):
        if status in statuses:
            return status
    if SyncStatus.SYNCED in statuses:
        return SyncStatus.SYNCED
    return record.sync_status


def status_counts(tree: TreeSnapshot) -> dict[str, int]:
    """Count items per sync status (``untracked`` for items without one)."""
    counts = Counter(
        record.sync_status.value if record.sync_status else "untracked"
        for record in tree.walk()
    )
    return dict(counts)


class SyncReport(BaseModel):
    """Outcome of a manual sync request."""

    item_ids: list[str] = Field(default_factory=list, description="Items submitted")
    message: str = Field(description="User-facing summary")
    paused: bool = Field(default=False, description="Whether sync is paused")


# ===== Schedulers =====


class SyncScheduler(ABC):
    """Runs callbacks after a delay."""

    @abstractmethod
    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        """Run ``callback`` once, ``delay`` seconds from now."""

    @abstractmethod
    def cancel_all(self) -> None:
        """Drop every callback that has not run yet."""


class ThreadingScheduler(SyncScheduler):
    """Scheduler backed by ``threading.Timer`` daemon threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timers: set[threading.Timer] = set()

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        timer: threading.Timer

        def run() -> None:
            with self._lock:
                self._timers.discard(timer)
            try:
                callback()
            except Exception as e:
                logger.error(f"Scheduled sync callback failed: {e}", exc_info=True)

        timer = threading.Timer(delay, run)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()

    def cancel_all(self) -> None:
        with self._lock:
            timers, self._timers = self._timers, set()
        for timer in timers:
            timer.cancel()
        if timers:
            logger.info(f"Cancelled {len(timers)} pending sync timer(s)")

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._timers)


class ManualScheduler(SyncScheduler):
    """Deterministic scheduler whose clock only moves on ``advance()``.

    Example:
        >>> scheduler = ManualScheduler()
        >>> scheduler.schedule(2.0, callback)
        >>> scheduler.advance(1.0)   # nothing runs
        0
        >>> scheduler.advance(1.0)   # callback runs
        1
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, Callable[[], None]]] = []
        self._counter = itertools.count()

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        heapq.heappush(self._queue, (self.now + delay, next(self._counter), callback))

    def cancel_all(self) -> None:
        self._queue.clear()

    @property
    def pending(self) -> int:
        return len(self._queue)

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run every callback that came due.

        Returns:
            Number of callbacks run.
        """
        if seconds < 0:
            raise ValueError("seconds cannot be negative")
        deadline = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= deadline:
            due, _, callback = heapq.heappop(self._queue)
            self.now = due
            callback()
            ran += 1
        self.now = deadline
        return ran

    def run_all(self) -> int:
        """Run every queued callback, including ones scheduled while running."""
        ran = 0
        while self._queue:
            ran += self.advance(self._queue[0][0] - self.now)
        return ran


# ===== Transports =====

CompletionCallback = Callable[[str, SyncStatus], None]


class SyncTransport(ABC):
    """Pushes items to the remote store and reports the outcome."""

    @abstractmethod
    def submit(self, item_id: str, on_complete: CompletionCallback) -> None:
        """Start syncing ``item_id``; call ``on_complete(item_id, status)`` later."""

    def shutdown(self) -> None:
        """Release timers or connections held by the transport."""


class SimulatedSyncTransport(SyncTransport):
    """Transport that settles each item after a random delay.

    Each submission resolves after ``min_delay + random() * jitter`` seconds,
    to ``error`` with probability ``failure_rate`` and to ``synced`` otherwise.

    Args:
        scheduler: Where the completions are scheduled.
        min_delay: Minimum seconds before completion.
        jitter: Maximum extra random seconds.
        failure_rate: Probability of an ``error`` outcome (0.0 to 1.0).
        rng: Random source (for seeded tests).
    """

    def __init__(
        self,
        scheduler: SyncScheduler,
        min_delay: float = 2.0,
        jitter: float = 3.0,
        failure_rate: float = 0.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        if min_delay < 0 or jitter < 0:
            raise ValueError("delays cannot be negative")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0.0 and 1.0")
        self.scheduler = scheduler
        self.min_delay = min_delay
        self.jitter = jitter
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()

    def submit(self, item_id: str, on_complete: CompletionCallback) -> None:
        delay = self.min_delay + self._rng.random() * self.jitter
        failed = self._rng.random() < self.failure_rate
        outcome = SyncStatus.ERROR if failed else SyncStatus.SYNCED
        logger.debug(f"Sync of '{item_id}' will settle as {outcome.value} in {delay:.2f}s")
        self.scheduler.schedule(delay, lambda: on_complete(item_id, outcome))

    def shutdown(self) -> None:
        self.scheduler.cancel_all()
