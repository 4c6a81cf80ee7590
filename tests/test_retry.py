from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from infrastructure.retry import RetryPolicy
from infrastructure.store.base import StoreError, TransientStoreError


class RetryPolicyTests(unittest.TestCase):
    def setUp(self) -> None:
        self.sleeps: list[float] = []
        self.policy = RetryPolicy(max_attempts=3, delay_seconds=0.5, sleep=self.sleeps.append)

    def test_retries_transient_failures_until_success(self) -> None:
        operation = MagicMock(side_effect=[TransientStoreError("blip"), TransientStoreError("blip"), ["ok"]])

        result = self.policy.call(operation, "select categories")

        self.assertEqual(result, ["ok"])
        self.assertEqual(operation.call_count, 3)
        self.assertEqual(self.sleeps, [0.5, 1.0])

    def test_raises_after_attempts_are_exhausted(self) -> None:
        operation = MagicMock(side_effect=TransientStoreError("down"))

        with self.assertRaises(TransientStoreError):
            self.policy.call(operation)

        self.assertEqual(operation.call_count, 3)
        self.assertEqual(len(self.sleeps), 2)

    def test_permanent_failures_are_not_retried(self) -> None:
        operation = MagicMock(side_effect=StoreError("HTTP 400"))

        with self.assertRaises(StoreError):
            self.policy.call(operation)

        self.assertEqual(operation.call_count, 1)
        self.assertEqual(self.sleeps, [])


class AsyncRetryPolicyTests(unittest.IsolatedAsyncioTestCase):
    async def test_acall_runs_operation(self) -> None:
        policy = RetryPolicy(max_attempts=2, delay_seconds=0, sleep=lambda _: None)
        operation = MagicMock(side_effect=[TransientStoreError("blip"), 42])

        self.assertEqual(await policy.acall(operation), 42)


if __name__ == "__main__":
    unittest.main()
