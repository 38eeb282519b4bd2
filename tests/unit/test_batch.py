"""Tests for productshot.core.batch.run_batch."""

import asyncio

from productshot.core.batch import run_batch
from productshot.core.outcome import Failure, FailureKind, Success
from productshot.core.payload import RequestPayload


def _payloads(n):
    return [RequestPayload(prompt=f"slot {i}") for i in range(n)]


class TestRunBatch:
    def test_concurrent_preserves_slot_order(self):
        async def dispatch(payload):
            # Later slots finish first.
            await asyncio.sleep(0.01 * (4 - int(payload.prompt.split()[-1])))
            return Success(image_data=payload.prompt)

        outcomes = asyncio.run(run_batch(dispatch, _payloads(4)))

        assert [o.image_data for o in outcomes] == ["slot 0", "slot 1", "slot 2", "slot 3"]

    def test_one_failure_does_not_affect_others(self):
        async def dispatch(payload):
            if payload.prompt == "slot 1":
                return Failure(FailureKind.REFUSAL, "no")
            return Success(image_data="ok")

        outcomes = asyncio.run(run_batch(dispatch, _payloads(3)))

        assert [o.ok for o in outcomes] == [True, False, True]

    def test_sequential_sleeps_between_slots(self, sleep_recorder):
        order = []

        async def dispatch(payload):
            order.append(payload.prompt)
            return Success(image_data="ok")

        outcomes = asyncio.run(
            run_batch(
                dispatch,
                _payloads(3),
                strategy="sequential",
                cooldown=1.5,
                sleep=sleep_recorder,
            )
        )

        assert len(outcomes) == 3
        assert order == ["slot 0", "slot 1", "slot 2"]
        assert sleep_recorder.delays == [1.5, 1.5]

    def test_sequential_without_cooldown(self, sleep_recorder):
        async def dispatch(payload):
            return Success(image_data="ok")

        asyncio.run(run_batch(dispatch, _payloads(2), strategy="sequential", sleep=sleep_recorder))

        assert sleep_recorder.delays == []

    def test_empty_batch(self):
        async def dispatch(payload):
            raise AssertionError("not called")

        assert asyncio.run(run_batch(dispatch, [])) == []
