import asyncio
import sys
import unittest
from pathlib import Path

_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

from watchlist_sync.application.operation_queue import OperationQueue


class TestOperationQueue(unittest.IsolatedAsyncioTestCase):
    async def test_runs_one_at_a_time_in_submission_order(self) -> None:
        queue = OperationQueue()
        trace: list[str] = []
        running = 0
        overlap = False

        def op(name: str, delay: float):
            async def _run() -> str:
                nonlocal running, overlap
                running += 1
                overlap = overlap or running > 1
                trace.append(f"start:{name}")
                await asyncio.sleep(delay)
                trace.append(f"end:{name}")
                running -= 1
                return name

            return _run

        results = await asyncio.gather(
            queue.enqueue(op("a", 0.02)),
            queue.enqueue(op("b", 0.0)),
            queue.enqueue(op("c", 0.01)),
        )

        self.assertEqual(results, ["a", "b", "c"])
        self.assertFalse(overlap)
        self.assertEqual(
            trace,
            ["start:a", "end:a", "start:b", "end:b", "start:c", "end:c"],
        )

    async def test_failure_resolves_to_sentinel_and_queue_continues(self) -> None:
        queue = OperationQueue(failure=False)

        async def boom() -> bool:
            raise RuntimeError("boom")

        async def ok() -> bool:
            return True

        with self.assertLogs("watchlist_sync.application.operation_queue", level="ERROR"):
            results = await asyncio.gather(queue.enqueue(boom), queue.enqueue(ok))
        self.assertEqual(results, [False, True])

    async def test_per_operation_failure_value(self) -> None:
        queue = OperationQueue(failure=False)

        async def boom() -> None:
            raise ValueError("bad")

        with self.assertLogs("watchlist_sync.application.operation_queue", level="ERROR"):
            self.assertIsNone(await queue.enqueue(boom, failure=None))

    async def test_join_waits_for_everything_submitted(self) -> None:
        queue = OperationQueue()
        done: list[int] = []

        async def slow() -> None:
            await asyncio.sleep(0.01)
            done.append(1)

        task = asyncio.ensure_future(queue.enqueue(slow))
        await asyncio.sleep(0)
        await queue.join()
        self.assertEqual(done, [1])
        await task
        self.assertFalse(queue.busy)
        self.assertEqual(queue.pending, 0)

    async def test_shutdown_cancels_waiting_operations(self) -> None:
        queue = OperationQueue()
        gate = asyncio.Event()

        async def blocked() -> None:
            await gate.wait()

        first = asyncio.ensure_future(queue.enqueue(blocked))
        second = asyncio.ensure_future(queue.enqueue(blocked))
        await asyncio.sleep(0)
        await queue.shutdown()
        results = await asyncio.gather(first, second, return_exceptions=True)
        self.assertTrue(all(isinstance(r, asyncio.CancelledError) for r in results))


if __name__ == "__main__":
    unittest.main()
