"""Unit tests for the wait-for-status polling helper."""

from __future__ import annotations

import unittest
from unittest.mock import patch

from cloudrig_core.exceptions import OperationTimeoutError
from cloudrig_core.wait import wait_for_status


class _FakeClock:
    """Stand-in for the ``time`` module that advances only when slept on."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class WaitForStatusTests(unittest.TestCase):
    """Check the timeout and success behaviour of the polling loop."""

    def setUp(self) -> None:
        self.clock = _FakeClock()
        patcher = patch("cloudrig_core.wait.time", self.clock)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _status_from(self, switch_at: float, before: str = "building", after: str = "active"):
        return lambda: after if self.clock.now >= switch_at else before

    def test_returns_immediately_when_already_at_target(self) -> None:
        wait_for_status(lambda: "active", "active", 60, interval=5)

        self.assertEqual(self.clock.sleeps, [])

    def test_returns_shortly_after_target_is_reached(self) -> None:
        wait_for_status(self._status_from(12), "active", 600, interval=5)

        self.assertGreaterEqual(self.clock.now, 12)
        self.assertLessEqual(self.clock.now, 12 + 5)

    def test_raises_after_timeout_when_target_never_reached(self) -> None:
        with self.assertRaises(OperationTimeoutError) as ctx:
            wait_for_status(lambda: "rebooting", "active", 300, interval=7)

        self.assertGreaterEqual(self.clock.now, 300)
        self.assertLessEqual(self.clock.now, 300 + 7)
        self.assertEqual(ctx.exception.target, "active")
        self.assertEqual(ctx.exception.last_status, "rebooting")
        self.assertEqual(ctx.exception.timeout, 300)

    def test_timeout_error_is_a_builtin_timeout(self) -> None:
        with self.assertRaises(TimeoutError):
            wait_for_status(lambda: "building", "active", 10, interval=5)

    def test_sleep_never_overshoots_deadline(self) -> None:
        with self.assertRaises(OperationTimeoutError):
            wait_for_status(lambda: "building", "active", 12, interval=5)

        self.assertEqual(self.clock.sleeps, [5, 5, 2])

    def test_final_check_accepts_late_arrival(self) -> None:
        answers = iter(["building", "building", "building", "active"])
        calls: list[str] = []

        def get_status() -> str:
            value = next(answers)
            calls.append(value)
            return value

        wait_for_status(get_status, "active", 10, interval=5)

        self.assertEqual(len(calls), 4)

    def test_status_errors_propagate(self) -> None:
        def get_status() -> str:
            raise RuntimeError("provider unavailable")

        with self.assertRaises(RuntimeError):
            wait_for_status(get_status, "active", 30, interval=5)

    def test_zero_timeout_checks_once_more_before_failing(self) -> None:
        calls: list[int] = []

        def get_status() -> str:
            calls.append(1)
            return "building"

        with self.assertRaises(OperationTimeoutError):
            wait_for_status(get_status, "active", 0, interval=5)

        self.assertEqual(len(calls), 2)
        self.assertEqual(self.clock.sleeps, [])


if __name__ == "__main__":  # pragma: no cover - convenience
    unittest.main()
