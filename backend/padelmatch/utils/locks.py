"""
Per-match critical sections.

Scheduler ticks are serialized by the caller. Inbound replies can land at
any time (FastAPI runs sync handlers in a threadpool), so every single-match
mutation triggered by a reply runs under that match's lock. Different
matches never share a lock.

The holder must re-read the match inside the lock (see
MatchRepository.reload_match): a copy loaded before entering is stale.
A lock entry is dropped when its last holder or waiter leaves.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

_registry_lock = threading.Lock()
# match id -> [lock, holders and waiters]
_match_locks: Dict[int, List] = {}


def _acquire_entry(match_id: int) -> threading.RLock:
    with _registry_lock:
        entry = _match_locks.get(match_id)
        if entry is None:
            entry = [threading.RLock(), 0]
            _match_locks[match_id] = entry
        entry[1] += 1
        return entry[0]


def _release_entry(match_id: int) -> None:
    with _registry_lock:
        entry = _match_locks[match_id]
        entry[1] -= 1
        if entry[1] == 0:
            del _match_locks[match_id]


@contextmanager
def match_lock(match_id: int) -> Iterator[None]:
    lock = _acquire_entry(match_id)
    try:
        with lock:
            yield
    finally:
        _release_entry(match_id)


def active_lock_count() -> int:
    with _registry_lock:
        return len(_match_locks)
