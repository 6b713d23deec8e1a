import unittest

import redis

from wordswap.services.rate_limit_service import RateLimitService


class _BrokenRedis:
    def pipeline(self):
        raise redis.ConnectionError("connection refused")


class RateLimitServiceTests(unittest.TestCase):
    def test_memory_window_blocks_after_limit(self) -> None:
        service = RateLimitService()
        decisions = [service.check("ws:event:join-room:Alice", limit=2, window_seconds=60) for _ in range(3)]
        self.assertEqual([decision.allowed for decision in decisions], [True, True, False])
        self.assertEqual(decisions[1].remaining, 0)
        self.assertGreaterEqual(decisions[2].retry_after_seconds, 1)

    def test_keys_are_counted_independently(self) -> None:
        service = RateLimitService()
        service.check("a", limit=1, window_seconds=60)
        self.assertTrue(service.check("b", limit=1, window_seconds=60).allowed)
        self.assertFalse(service.check("a", limit=1, window_seconds=60).allowed)

    def test_clear_resets_counters(self) -> None:
        service = RateLimitService()
        service.check("a", limit=1, window_seconds=60)
        service.clear()
        self.assertTrue(service.check("a", limit=1, window_seconds=60).allowed)

    def test_redis_failure_falls_back_to_memory(self) -> None:
        service = RateLimitService(redis_client=_BrokenRedis())
        with self.assertLogs("wordswap.services.rate_limit_service", level="WARNING"):
            decision = service.check("a", limit=1, window_seconds=60)
        self.assertTrue(decision.allowed)


if __name__ == "__main__":
    unittest.main()
