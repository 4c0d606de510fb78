# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Per-press writer serialization.

Counter readings and bindings of one press are written by one thread at a
time, so two writers can't interleave a read-then-write on the same slot.
Locks are in-process; a multi-process deployment needs row locks in the
database instead.
"""
import threading
from contextlib import ExitStack, contextmanager
from typing import Dict, Iterator, Optional

from pressledger.logging_config import get_logger

logger = get_logger(__name__)

_press_locks: Dict[Optional[int], threading.RLock] = {}
_registry_lock = threading.Lock()


def _get_press_lock(press_number: Optional[int]) -> threading.RLock:
    with _registry_lock:
        lock = _press_locks.get(press_number)
        if lock is None:
            lock = threading.RLock()
            _press_locks[press_number] = lock
        return lock


@contextmanager
def press_lock(*press_numbers: Optional[int]) -> Iterator[None]:
    """Hold the writer lock of one or more presses.

    Args:
        *press_numbers: Presses to lock; None stands for "no press"

    Assumptions:
    - Locks are taken in ascending order (None first) so two callers
      locking the same pair can't deadlock
    - Re-entrant: a function holding a press lock may call another that
      takes it again
    """
    ordered = sorted(set(press_numbers), key=lambda n: -1 if n is None else n)
    with ExitStack() as stack:
        for number in ordered:
            stack.enter_context(_get_press_lock(number))
        logger.debug("press_lock_acquired", presses=ordered)
        yield
