"""Run several independent dispatches for one batch of image slots."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Literal

from productshot.core.outcome import DispatchOutcome
from productshot.core.payload import RequestPayload

logger = logging.getLogger(__name__)

BatchStrategy = Literal["concurrent", "sequential"]


async def run_batch(
    dispatch: Callable[[RequestPayload], Awaitable[DispatchOutcome]],
    payloads: Sequence[RequestPayload],
    *,
    strategy: BatchStrategy = "concurrent",
    cooldown: float = 0.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[DispatchOutcome]:
    """Dispatch every payload and return outcomes in slot order.

    Args:
        dispatch: Usually ``RequestDispatcher.dispatch_payload``.
        payloads: One payload per slot.
        strategy: ``"concurrent"`` starts every slot at once;
            ``"sequential"`` waits for each slot and pauses ``cooldown``
            seconds between them.
        cooldown: Pause between slots in sequential mode.
        sleep: Awaitable sleep, replaceable in tests.

    Returns:
        One outcome per payload.  Dispatch never raises for remote errors,
        so one slot failing does not affect the others.
    """
    if strategy == "concurrent":
        return list(await asyncio.gather(*(dispatch(p) for p in payloads)))

    outcomes: list[DispatchOutcome] = []
    for i, payload in enumerate(payloads):
        if i and cooldown > 0:
            await sleep(cooldown)
        outcomes.append(await dispatch(payload))
        logger.debug("Slot %d/%d finished (ok=%s)", i + 1, len(payloads), outcomes[-1].ok)
    return outcomes
