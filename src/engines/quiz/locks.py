"""
Per-user mutual exclusion for read-modify-write cycles on progress.
"""

import asyncio
import weakref


class UserLockRegistry:
    """Hands out one asyncio.Lock per user id; unused locks are garbage collected."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock
