"""
Tests for the per-pair message rate limiter.

Tests cover:
- Short-window boundary (N allowed, N+1 rejected)
- Direction independence
- Window expiry
- Long-window cap and reset on reply
- Releasing a slot for a failed send
- Idle pairs are not kept in memory
"""

from app.core.rate_limiter import PairRateLimiter


def make_limiter(clock, **overrides):
    options = dict(
        short_limit=5,
        short_window_seconds=10,
        long_limit=60,
        long_window_seconds=3600,
        reset_on_reply=True,
        clock=clock,
    )
    options.update(overrides)
    return PairRateLimiter(**options)


class TestShortWindow:
    def test_allows_up_to_limit_then_rejects(self, clock):
        limiter = make_limiter(clock)

        for _ in range(5):
            assert limiter.acquire("a", "b").allowed
            clock.advance(0.1)

        decision = limiter.acquire("a", "b")
        assert decision.allowed is False
        assert decision.reason
        assert decision.retry_after >= 1

    def test_reverse_direction_is_independent(self, clock):
        limiter = make_limiter(clock)
        for _ in range(5):
            limiter.acquire("a", "b")

        assert limiter.acquire("a", "b").allowed is False
        assert limiter.acquire("b", "a").allowed is True

    def test_other_recipients_are_independent(self, clock):
        limiter = make_limiter(clock)
        for _ in range(5):
            limiter.acquire("a", "b")

        assert limiter.acquire("a", "c").allowed is True

    def test_window_expiry_frees_slots(self, clock):
        limiter = make_limiter(clock)
        for _ in range(5):
            limiter.acquire("a", "b")
        assert limiter.check_limit("a", "b").allowed is False

        clock.advance(10)

        assert limiter.acquire("a", "b").allowed is True

    def test_retry_after_counts_down(self, clock):
        limiter = make_limiter(clock)
        for _ in range(5):
            limiter.acquire("a", "b")

        clock.advance(4)
        assert limiter.check_limit("a", "b").retry_after == 6


class TestCheckDoesNotConsume:
    def test_check_limit_is_read_only(self, clock):
        limiter = make_limiter(clock, short_limit=1)

        for _ in range(3):
            assert limiter.check_limit("a", "b").allowed

        assert limiter.acquire("a", "b").allowed
        assert limiter.check_limit("a", "b").allowed is False

    def test_rejected_acquire_records_nothing(self, clock):
        limiter = make_limiter(clock, short_limit=1)
        limiter.acquire("a", "b")
        limiter.acquire("a", "b")
        limiter.acquire("a", "b")

        clock.advance(10)
        assert limiter.acquire("a", "b").allowed
        assert limiter.check_limit("a", "b").allowed is False


class TestLongWindow:
    def test_long_cap_blocks_sustained_flooding(self, clock):
        limiter = make_limiter(clock, long_limit=3)

        for _ in range(3):
            assert limiter.acquire("a", "b").allowed
            clock.advance(60)

        decision = limiter.acquire("a", "b")
        assert decision.allowed is False
        assert "reply" in decision.reason

    def test_reply_resets_long_window(self, clock):
        limiter = make_limiter(clock, long_limit=3)
        for _ in range(3):
            limiter.acquire("a", "b")
            clock.advance(60)
        assert limiter.check_limit("a", "b").allowed is False

        limiter.record_reply("b", "a")

        assert limiter.check_limit("a", "b").allowed is True

    def test_reply_does_not_reset_short_window(self, clock):
        limiter = make_limiter(clock)
        for _ in range(5):
            limiter.acquire("a", "b")

        limiter.record_reply("b", "a")

        assert limiter.check_limit("a", "b").allowed is False

    def test_reset_on_reply_can_be_disabled(self, clock):
        limiter = make_limiter(clock, long_limit=2, reset_on_reply=False)
        limiter.acquire("a", "b")
        clock.advance(60)
        limiter.acquire("a", "b")

        limiter.record_reply("b", "a")

        assert limiter.check_limit("a", "b").allowed is False


class TestRelease:
    def test_release_returns_the_slot(self, clock):
        limiter = make_limiter(clock, short_limit=1)
        decision = limiter.acquire("a", "b")
        assert limiter.check_limit("a", "b").allowed is False

        limiter.release("a", "b", decision.stamp)

        assert limiter.check_limit("a", "b").allowed is True

    def test_release_without_stamp_is_noop(self, clock):
        limiter = make_limiter(clock, short_limit=1)
        limiter.acquire("a", "b")

        limiter.release("a", "b", None)

        assert limiter.check_limit("a", "b").allowed is False


class TestMemory:
    def test_check_limit_tracks_nothing(self, clock):
        limiter = make_limiter(clock)

        for i in range(1000):
            assert limiter.check_limit("a", f"u{i}").allowed

        assert limiter.tracked_pairs == 0

    def test_expired_pairs_are_forgotten(self, clock):
        limiter = make_limiter(clock)
        limiter.acquire("a", "b")
        limiter.acquire("a", "c")
        assert limiter.tracked_pairs == 2

        clock.advance(3600)

        assert limiter.check_limit("a", "b").allowed
        assert limiter.tracked_pairs == 1
        assert limiter.acquire("a", "c").allowed
        assert limiter.tracked_pairs == 1

    def test_released_slot_forgets_pair(self, clock):
        limiter = make_limiter(clock)
        decision = limiter.acquire("a", "b")

        limiter.release("a", "b", decision.stamp)

        assert limiter.tracked_pairs == 0
