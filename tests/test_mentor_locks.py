"""
Tests for the per-mentor lock registry.
"""
import gc

from mentor_booking.booking.services.mentor_locks import MentorLockRegistry


class TestMentorLockRegistry:
    def test_same_mentor_shares_a_lock(self):
        registry = MentorLockRegistry()
        first = registry.get(7)

        assert registry.get(7) is first
        assert registry.get(8) is not first

    async def test_held_lock_is_shared_with_later_callers(self):
        registry = MentorLockRegistry()

        async with registry.get(7):
            assert registry.get(7).locked()

        assert not registry.get(7).locked()

    def test_unused_locks_are_released(self):
        registry = MentorLockRegistry()
        for mentor_id in range(50):
            registry.get(mentor_id)
        gc.collect()

        assert len(registry) == 0
