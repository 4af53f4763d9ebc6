import asyncio
import weakref


class MentorLockRegistry:
    """
    One asyncio.Lock per mentor, serialising reservation attempts inside a
    single process. Cross-process exclusion comes from the row lock the
    ledger takes on the mentor profile.

    Locks are held weakly: a lock lives only while some coroutine holds or
    awaits it, so the registry does not grow with every mentor ever booked.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def get(self, mentor_id: int) -> asyncio.Lock:
        lock = self._locks.get(mentor_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[mentor_id] = lock
        return lock

    def __len__(self):
        return len(self._locks)


mentor_locks = MentorLockRegistry()
